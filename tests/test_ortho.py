import pytest

from dcmkit.ortho import (
    NiftiHeader,
    best_orient,
    is_canonical,
    mat_dot_mul33,
    mat_mul33,
    min_corner_flip,
    orient_vector,
    ortho_residual,
    reorient_image,
    set_ortho,
)

IDENTITY = [[1, 0, 0], [0, 1, 0], [0, 0, 1]]


def _header(dims, rows, bitpix=8, sform_code=1):
    dim = [len(dims)] + list(dims) + [1] * (7 - len(dims))
    return NiftiHeader(
        dim=dim,
        pixdim=[1.0] * 8,
        bitpix=bitpix,
        sform_code=sform_code,
        srow_x=list(rows[0]),
        srow_y=list(rows[1]),
        srow_z=list(rows[2]),
    )


def _world_map(img, header):
    s = header.sform()
    nx, ny, nz = header.dim[1:4]
    result = {}
    index = 0
    for k in range(nz):
        for j in range(ny):
            for i in range(nx):
                world = tuple(
                    round(s[r][0] * i + s[r][1] * j + s[r][2] * k + s[r][3], 4) + 0.0
                    for r in range(3)
                )
                result[world] = img[index]
                index += 1
    return result


def test_mat_mul_identity():
    m = [[1, 2, 3], [4, 5, 6], [7, 8, 9]]
    assert mat_mul33(IDENTITY, m) == m
    assert mat_mul33(m, IDENTITY) == m


def test_mat_dot_mul_uses_transpose_of_second():
    m = [[1, 2, 3], [4, 5, 6], [7, 8, 9]]
    ones = [[1] * 3 for _ in range(3)]
    transposed = [[m[j][i] for j in range(3)] for i in range(3)]
    assert mat_dot_mul33(ones, m) == transposed


def test_ortho_residual_of_identity():
    assert ortho_residual(IDENTITY, IDENTITY) == 3


def test_is_canonical():
    assert is_canonical([[2, 0, 0, 5], [0, 1, 0, 5], [0, 0, 3, 5], [0, 0, 0, 1]])
    assert not is_canonical([[-1, 0, 0], [0, 1, 0], [0, 0, 1]])
    assert not is_canonical([[1, 0.1, 0], [0, 1, 0], [0, 0, 1]])


def test_orient_vector_reflect_and_swap():
    assert orient_vector([[-1, 0, 0], [0, 1, 0], [0, 0, 1]]) == (-1, 2, 3)
    assert orient_vector([[0, 1, 0], [1, 0, 0], [0, 0, 1]]) == (2, 1, 3)


def test_best_orient_identity():
    assert best_orient(IDENTITY, (1, 1, 1)) == IDENTITY


def test_best_orient_permutation_inverts():
    perm = [[0, 1, 0], [1, 0, 0], [0, 0, 1]]
    orient = best_orient(perm, (1, 1, 1))
    assert is_canonical(mat_mul33(perm, orient))


def test_best_orient_rejects_zero_matrix():
    with pytest.raises(ValueError):
        best_orient([[0, 0, 0], [0, 0, 0], [0, 0, 0]], (1, 1, 1))


def test_min_corner_flip_reflected_x():
    h = _header((4, 1, 1), [[-1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0]])
    corner, flip = min_corner_flip(h)
    assert flip == (-1, 1, 1)
    assert corner == pytest.approx((-3, 0, 0))


def test_reorient_image_flip_x():
    out = reorient_image(bytes([1, 2, 3, 4]), (4, 1, 1), (-1, 4, 4), 1, 1)
    assert bytes(out) == bytes([4, 3, 2, 1])


def test_reorient_image_two_byte_voxels():
    out = reorient_image(b"\x01\x02\x03\x04", (2, 1, 1), (-1, 2, 2), 2, 1)
    assert bytes(out) == b"\x03\x04\x01\x02"


def test_set_ortho_flipped_x():
    h = _header((4, 1, 1), [[-1, 0, 0, 3], [0, 1, 0, 0], [0, 0, 1, 0]])
    before = _world_map(bytes([1, 2, 3, 4]), h)
    out = set_ortho(bytes([1, 2, 3, 4]), h)
    assert bytes(out) == bytes([4, 3, 2, 1])
    assert h.srow_x == pytest.approx([1, 0, 0, 0])
    assert _world_map(out, h) == before
    assert h.qform_code == h.sform_code
    assert (h.quatern_b, h.quatern_c, h.quatern_d) == pytest.approx((0, 0, 0), abs=1e-6)
    assert h.pixdim[0] == 1.0


@pytest.mark.parametrize(
    "rows",
    [
        [[-1, 0, 0, 5], [0, 1, 0, -2], [0, 0, 1, 1]],
        [[0, 1, 0, 0], [1, 0, 0, 0], [0, 0, 1, 0]],
        [[0, 0, 1, 0], [1, 0, 0, 0], [0, 1, 0, 0]],
        [[-1, 0, 0, 0], [0, -1, 0, 0], [0, 0, -1, 0]],
        [[0, -2, 0, 10], [0, 0, 3, -4], [1.5, 0, 0, 7]],
    ],
)
def test_set_ortho_preserves_world_positions(rows):
    h = _header((2, 3, 4), rows)
    img = bytes(range(24))
    before = _world_map(img, h)
    out = set_ortho(img, h)
    assert is_canonical(h.sform())
    assert _world_map(out, h) == before
    assert sorted(h.dim[1:4]) == [2, 3, 4]


def test_set_ortho_swaps_dims_and_pixdim():
    h = _header((2, 3, 1), [[0, 2, 0, 0], [1, 0, 0, 0], [0, 0, 1, 0]])
    h.pixdim = [1.0, 1.0, 2.0, 1.0, 1.0, 1.0, 1.0, 1.0]
    set_ortho(bytes(range(6)), h)
    assert h.dim[1:4] == [3, 2, 1]
    assert h.pixdim[1:4] == [2.0, 1.0, 1.0]


def test_set_ortho_handles_extra_volumes():
    h = _header((2, 1, 1, 2), [[-1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0]])
    out = set_ortho(bytes([1, 2, 3, 4]), h)
    assert bytes(out) == bytes([2, 1, 4, 3])


def test_set_ortho_canonical_unchanged():
    h = _header((2, 2, 1), [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0]])
    img = bytes([1, 2, 3, 4])
    assert set_ortho(img, h) is img
    assert h.qform_code == 0


def test_set_ortho_without_transform_unchanged():
    h = _header((2, 1, 1), [[-1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0]], sform_code=0)
    img = bytes([1, 2])
    assert set_ortho(img, h) is img
    assert h.srow_x == [-1, 0, 0, 0]


def test_set_ortho_rgb_left_alone():
    h = _header((2, 1, 1), [[-1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0]], bitpix=24)
    img = bytes(range(6))
    assert set_ortho(img, h) is img
    assert h.dim[1:4] == [2, 1, 1]


def test_set_ortho_zero_dimension_unchanged():
    h = _header((0, 1, 1), [[-1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0]])
    img = b""
    assert set_ortho(img, h) is img


def test_set_ortho_from_qform_only():
    h = _header((2, 2, 1), [[0, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0]], sform_code=0)
    h.qform_code = 1
    h.quatern_d = 1.0  # half turn about z: x and y reversed
    out = set_ortho(bytes([1, 2, 3, 4]), h)
    assert h.sform_code == 1
    assert bytes(out) == bytes([4, 3, 2, 1])
    assert is_canonical(h.sform())


def test_header_sform_round_trip():
    h = NiftiHeader()
    m = [[0, 1, 0, 4], [1, 0, 0, 5], [0, 0, -1, 6], [0, 0, 0, 1]]
    h.set_sform(m)
    assert h.sform() == m