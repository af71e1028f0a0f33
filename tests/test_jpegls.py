import pytest

from dcmkit.jpegls import (
    ApiResult,
    CharlsError,
    Code,
    CodeTable,
    ColorTransformation,
    InterleaveMode,
    JlsContext,
    JlsParameters,
    PresetCodingParameters,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (0, "OK"),
        (5, "INVALID_COMPRESSED_DATA"),
        (6, "TOO_MUCH_COMPRESSED_DATA"),
        (14, "UNEXPECTED_FAILURE"),
    ],
)
def test_api_result_from_wire_value(raw, expected):
    assert ApiResult(raw).name == expected


def test_api_result_rejects_unknown_value():
    with pytest.raises(ValueError):
        ApiResult(99)


def test_enum_lookup_by_value():
    assert InterleaveMode(2).name == "SAMPLE"
    assert ColorTransformation(3).name == "HP3"


def test_charls_error_carries_result():
    err = CharlsError(ApiResult.INVALID_COMPRESSED_DATA)
    assert err.result is ApiResult.INVALID_COMPRESSED_DATA
    assert "invalid compressed data" in str(err)
    with pytest.raises(CharlsError) as info:
        raise err
    assert info.value.result == 5


def test_parameters_defaults():
    params = JlsParameters()
    assert params.interleave_mode is InterleaveMode.NONE
    assert params.custom == PresetCodingParameters()


def test_new_context_state():
    ctx = JlsContext(7)
    assert (ctx.a, ctx.b, ctx.c, ctx.n) == (7, 0, 0, 1)


def test_error_correction_nonzero_k_is_zero():
    ctx = JlsContext()
    ctx.b = -10
    assert ctx.error_correction(1) == 0


def test_error_correction_sign():
    ctx = JlsContext()
    assert ctx.error_correction(0) == 0
    ctx.b = -1
    assert ctx.error_correction(0) == -1


@pytest.mark.parametrize("a", [0, 1, 2, 3, 4, 5, 17, 100, 4096])
def test_golomb_is_minimal(a):
    ctx = JlsContext(a)
    k = ctx.golomb()
    assert (ctx.n << k) >= a
    if k > 0:
        assert (ctx.n << (k - 1)) < a


def test_update_zero_error():
    ctx = JlsContext()
    ctx.update(0, 0, 64)
    assert (ctx.a, ctx.b, ctx.c, ctx.n) == (0, 0, 0, 2)


def test_update_positive_error():
    ctx = JlsContext()
    ctx.update(5, 0, 64)
    assert (ctx.a, ctx.b, ctx.c, ctx.n) == (5, 0, 1, 2)


def test_update_negative_error():
    ctx = JlsContext()
    ctx.update(-5, 0, 64)
    assert ctx.a == 5
    assert ctx.c == -1
    assert -ctx.n < ctx.b <= 0


def test_update_reset_halves():
    ctx = JlsContext(8)
    ctx.n = 4
    ctx.update(0, 0, 4)
    assert ctx.a == 4
    assert ctx.n == 3


def test_update_keeps_bias_in_range_and_c_clamped():
    ctx = JlsContext()
    ctx.c = 127
    for err in [9, 3, -20, 50, 7, -1, 0, 12] * 10:
        ctx.update(err, 0, 64)
        assert -ctx.n < ctx.b <= 0
        assert -128 <= ctx.c <= 127


def test_code_table_fills_prefix_range():
    table = CodeTable()
    code = Code(value=3, length=2)
    table.add_entry(0b01, code)
    for byte in range(0b01000000, 0b10000000):
        assert table.get(byte) == code
    assert table.get(0).length == 0
    assert table.get(0b10000000).length == 0


def test_code_table_full_length_entry():
    table = CodeTable()
    code = Code(value=-2, length=8)
    table.add_entry(200, code)
    assert table.get(200) == code
    assert table.get(201) == Code()


def test_code_table_rejects_overlap():
    table = CodeTable()
    table.add_entry(0b1, Code(1, 1))
    with pytest.raises(ValueError):
        table.add_entry(0b11, Code(2, 2))


def test_code_table_rejects_long_code():
    with pytest.raises(ValueError):
        CodeTable().add_entry(0, Code(0, 9))