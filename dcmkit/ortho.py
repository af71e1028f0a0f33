"""Reslice NIfTI volumes into the nearest canonical (RAS-like) orthogonal orientation."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

__all__ = [
    "XFORM_UNKNOWN",
    "NiftiHeader",
    "mat_dot_mul33",
    "mat_mul33",
    "ortho_residual",
    "best_orient",
    "is_canonical",
    "orient_vector",
    "min_corner_flip",
    "reorient_image",
    "set_ortho",
]

XFORM_UNKNOWN = 0

Matrix = list[list[float]]
Vec3 = tuple[float, float, float]
Vec3i = tuple[int, int, int]


@dataclass
class NiftiHeader:
    """The spatial fields of a NIfTI-1 header that reorientation reads and updates."""

    dim: list[int] = field(default_factory=lambda: [3, 1, 1, 1, 1, 1, 1, 1])
    pixdim: list[float] = field(default_factory=lambda: [1.0] * 8)
    bitpix: int = 8
    qform_code: int = XFORM_UNKNOWN
    sform_code: int = XFORM_UNKNOWN
    quatern_b: float = 0.0
    quatern_c: float = 0.0
    quatern_d: float = 0.0
    qoffset_x: float = 0.0
    qoffset_y: float = 0.0
    qoffset_z: float = 0.0
    srow_x: list[float] = field(default_factory=lambda: [1.0, 0.0, 0.0, 0.0])
    srow_y: list[float] = field(default_factory=lambda: [0.0, 1.0, 0.0, 0.0])
    srow_z: list[float] = field(default_factory=lambda: [0.0, 0.0, 1.0, 0.0])

    def sform(self) -> Matrix:
        """The s-form as a 4x4 matrix whose last row is 0 0 0 1."""
        return [
            list(self.srow_x[:4]),
            list(self.srow_y[:4]),
            list(self.srow_z[:4]),
            [0.0, 0.0, 0.0, 1.0],
        ]

    def set_sform(self, matrix: Sequence[Sequence[float]]) -> None:
        """Store the first three rows of a 4x4 matrix as the s-form rows."""
        self.srow_x = [float(v) for v in matrix[0][:4]]
        self.srow_y = [float(v) for v in matrix[1][:4]]
        self.srow_z = [float(v) for v in matrix[2][:4]]


def mat_dot_mul33(a: Sequence[Sequence[float]], b: Sequence[Sequence[float]]) -> Matrix:
    """Element-wise product of a with the transpose of b."""
    return [[a[i][j] * b[j][i] for j in range(3)] for i in range(3)]


def mat_mul33(a: Sequence[Sequence[float]], b: Sequence[Sequence[float]]) -> Matrix:
    """Matrix product a * b of two 3x3 matrices."""
    return [[sum(a[i][k] * b[k][j] for k in range(3)) for j in range(3)] for i in range(3)]


def ortho_residual(orig: Sequence[Sequence[float]], transform: Sequence[Sequence[float]]) -> float:
    """Sum of the element-wise product of orig with the transpose of transform."""
    return sum(sum(row) for row in mat_dot_mul33(orig, transform))


def _candidates(flip: Sequence[int]) -> list[Matrix]:
    f0, f1, f2 = flip
    return [
        [[f0, 0, 0], [0, f1, 0], [0, 0, f2]],
        [[f0, 0, 0], [0, 0, f1], [0, f2, 0]],
        [[0, f0, 0], [f1, 0, 0], [0, 0, f2]],
        [[0, f0, 0], [0, 0, f1], [f2, 0, 0]],
        [[0, 0, f0], [f1, 0, 0], [0, f2, 0]],
        [[0, 0, f0], [0, f1, 0], [f2, 0, 0]],
    ]


def best_orient(r: Sequence[Sequence[float]], flip: Sequence[int]) -> Matrix:
    """Pick the signed permutation matrix that best matches the rotation part of r.

    flip gives the sign for each axis: (1, 1, 1) means no flips, (-1, 1, 1) flips X.
    """
    orig = [[float(r[i][j]) for j in range(3)] for i in range(3)]
    best = 0.0
    chosen: Matrix | None = None
    for candidate in _candidates(flip):
        value = ortho_residual(orig, candidate)
        if value > best:
            best = value
            chosen = candidate
    if chosen is None:
        raise ValueError("no orthogonal orientation matches the transform")
    return [[float(v) for v in row] for row in chosen]


def is_canonical(r: Sequence[Sequence[float]]) -> bool:
    """True when the 3x3 part has a positive diagonal and zeros elsewhere."""
    for i in range(3):
        for j in range(3):
            if i == j and r[i][j] <= 0:
                return False
            if i != j and r[i][j] != 0:
                return False
    return True


def orient_vector(m: Sequence[Sequence[float]]) -> Vec3i:
    """Describe a signed permutation: (-1, 2, 3) reflects X, (2, 1, 3) swaps X and Y."""
    ret = [0, 0, 0]
    for i in range(3):
        for j in range(3):
            if m[i][j] > 0:
                ret[j] = i + 1
            if m[i][j] < 0:
                ret[j] = -(i + 1)
    return (ret[0], ret[1], ret[2])


def _xyz_to_mm(r: Sequence[Sequence[float]], v: Sequence[float]) -> Vec3:
    return tuple(  # type: ignore[return-value]
        r[i][0] * v[0] + r[i][1] * v[1] + r[i][2] * v[2] + r[i][3] for i in range(3)
    )


def min_corner_flip(header: NiftiHeader) -> tuple[Vec3, Vec3i]:
    """Find the volume corner closest to the minimum world coordinate.

    Returns that corner's position in millimetres and the axis flips that bring it
    to voxel (0, 0, 0).
    """
    s = header.sform()
    flips: list[Vec3i] = []
    corners: list[Vec3] = []
    for i in range(8):
        flip = tuple(-1 if i & (1 << axis) else 1 for axis in range(3))
        voxel = [header.dim[axis + 1] - 1 if flip[axis] < 1 else 0 for axis in range(3)]
        flips.append(flip)  # type: ignore[arg-type]
        corners.append(_xyz_to_mm(s, voxel))
    lowest = tuple(min(c[axis] for c in corners) for axis in range(3))
    best_index = 0
    best_distance = math.dist(corners[0], lowest)
    for index, corner in enumerate(corners[1:], start=1):
        distance = math.dist(corner, lowest)
        if distance < best_distance:
            best_distance = distance
            best_index = index
    return corners[best_index], flips[best_index]


def _offset_table(dim: int, step: int) -> list[int]:
    start = 0 if step > 0 else -step * (dim - 1)
    return [start + i * step for i in range(dim)]


def reorient_image(
    img: bytes | bytearray,
    out_dim: Sequence[int],
    out_inc: Sequence[int],
    bytes_per_voxel: int,
    nvol: int,
) -> bytearray:
    """Reslice each of nvol volumes to the output dimensions and voxel increments."""
    x_lut = _offset_table(out_dim[0], bytes_per_voxel * out_inc[0])
    y_lut = _offset_table(out_dim[1], bytes_per_voxel * out_inc[1])
    z_lut = _offset_table(out_dim[2], bytes_per_voxel * out_inc[2])
    bytes_per_vol = bytes_per_voxel * out_dim[0] * out_dim[1] * out_dim[2]
    out = bytearray(img)
    for vol in range(nvol):
        base = vol * bytes_per_vol
        src = bytes(out[base:base + bytes_per_vol])
        if len(src) < bytes_per_vol:
            raise ValueError("image is smaller than its header describes")
        out[base:base + bytes_per_vol] = b"".join(
            src[zo + yo + xo:zo + yo + xo + bytes_per_voxel]
            for zo in z_lut
            for yo in y_lut
            for xo in x_lut
        )
    return out


# --- quaternion <-> matrix (NIfTI-1 conventions) ----------------------------


def _det(m: Sequence[Sequence[float]]) -> float:
    return (
        m[0][0] * (m[1][1] * m[2][2] - m[1][2] * m[2][1])
        - m[0][1] * (m[1][0] * m[2][2] - m[1][2] * m[2][0])
        + m[0][2] * (m[1][0] * m[2][1] - m[1][1] * m[2][0])
    )


def _inverse(m: Sequence[Sequence[float]]) -> Matrix:
    d = _det(m)
    if d != 0:
        d = 1.0 / d
    return [
        [
            d * (m[1][1] * m[2][2] - m[1][2] * m[2][1]),
            d * (-m[0][1] * m[2][2] + m[0][2] * m[2][1]),
            d * (m[0][1] * m[1][2] - m[0][2] * m[1][1]),
        ],
        [
            d * (-m[1][0] * m[2][2] + m[1][2] * m[2][0]),
            d * (m[0][0] * m[2][2] - m[0][2] * m[2][0]),
            d * (-m[0][0] * m[1][2] + m[0][2] * m[1][0]),
        ],
        [
            d * (m[1][0] * m[2][1] - m[1][1] * m[2][0]),
            d * (-m[0][0] * m[2][1] + m[0][1] * m[2][0]),
            d * (m[0][0] * m[1][1] - m[0][1] * m[1][0]),
        ],
    ]


def _row_norm(m: Sequence[Sequence[float]]) -> float:
    return max(sum(abs(v) for v in row) for row in m)


def _col_norm(m: Sequence[Sequence[float]]) -> float:
    return max(sum(abs(m[i][j]) for i in range(3)) for j in range(3))


def _polar(a: Sequence[Sequence[float]]) -> Matrix:
    """Orthogonal factor of the polar decomposition of a 3x3 matrix."""
    x = [list(row) for row in a]
    gam = _det(x)
    while gam == 0.0:
        gam = 0.00001 * (0.001 + _row_norm(x))
        for i in range(3):
            x[i][i] += gam
        gam = _det(x)
    dif = 1.0
    iterations = 0
    while True:
        y = _inverse(x)
        if dif > 0.3:
            alp = math.sqrt(_row_norm(x) * _col_norm(x))
            bet = math.sqrt(_row_norm(y) * _col_norm(y))
            gam = math.sqrt(bet / alp)
            gmi = 1.0 / gam
        else:
            gam = gmi = 1.0
        z = [[0.5 * (gam * x[i][j] + gmi * y[j][i]) for j in range(3)] for i in range(3)]
        dif = sum(abs(z[i][j] - x[i][j]) for i in range(3) for j in range(3))
        iterations += 1
        if iterations > 100 or dif < 3.0e-6:
            return z
        x = z


def _quatern_to_mat44(qb, qc, qd, qx, qy, qz, dx, dy, dz, qfac) -> Matrix:
    b, c, d = qb, qc, qd
    a = 1.0 - (b * b + c * c + d * d)
    if a < 1.0e-7:
        a = 1.0 / math.sqrt(b * b + c * c + d * d)
        b, c, d = a * b, a * c, a * d
        a = 0.0
    else:
        a = math.sqrt(a)
    xd = dx if dx > 0 else 1.0
    yd = dy if dy > 0 else 1.0
    zd = dz if dz > 0 else 1.0
    if qfac < 0:
        zd = -zd
    return [
        [(a * a + b * b - c * c - d * d) * xd, 2 * (b * c - a * d) * yd, 2 * (b * d + a * c) * zd, qx],
        [2 * (b * c + a * d) * xd, (a * a + c * c - b * b - d * d) * yd, 2 * (c * d - a * b) * zd, qy],
        [2 * (b * d - a * c) * xd, 2 * (c * d + a * b) * yd, (a * a + d * d - c * c - b * b) * zd, qz],
        [0.0, 0.0, 0.0, 1.0],
    ]


def _mat44_to_quatern(r: Sequence[Sequence[float]]):
    """Return (b, c, d, qx, qy, qz, dx, dy, dz, qfac) for a 4x4 transform."""
    qx, qy, qz = r[0][3], r[1][3], r[2][3]
    cols = [[r[0][j], r[1][j], r[2][j]] for j in range(3)]
    norms = []
    for j, col in enumerate(cols):
        n = math.sqrt(sum(v * v for v in col))
        if n == 0.0:
            col[:] = [0.0, 0.0, 0.0]
            col[j] = 1.0
            n = 1.0
        norms.append(n)
        col[:] = [v / n for v in col]
    q = [[cols[j][i] for j in range(3)] for i in range(3)]
    p = _polar(q)
    (r11, r12, r13), (r21, r22, r23), (r31, r32, r33) = p
    if _det(p) > 0:
        qfac = 1.0
    else:
        qfac = -1.0
        r13, r23, r33 = -r13, -r23, -r33
    a = r11 + r22 + r33 + 1.0
    if a > 0.5:
        a = 0.5 * math.sqrt(a)
        b = 0.25 * (r32 - r23) / a
        c = 0.25 * (r13 - r31) / a
        d = 0.25 * (r21 - r12) / a
    else:
        xd = 1.0 + r11 - (r22 + r33)
        yd = 1.0 + r22 - (r11 + r33)
        zd = 1.0 + r33 - (r11 + r22)
        if xd > 1.0:
            b = 0.5 * math.sqrt(xd)
            c = 0.25 * (r12 + r21) / b
            d = 0.25 * (r13 + r31) / b
            a = 0.25 * (r32 - r23) / b
        elif yd > 1.0:
            c = 0.5 * math.sqrt(yd)
            b = 0.25 * (r12 + r21) / c
            d = 0.25 * (r23 + r32) / c
            a = 0.25 * (r13 - r31) / c
        else:
            d = 0.5 * math.sqrt(zd)
            b = 0.25 * (r13 + r31) / d
            c = 0.25 * (r23 + r32) / d
            a = 0.25 * (r21 - r12) / d
        if a < 0.0:
            b, c, d = -b, -c, -d
    return b, c, d, qx, qy, qz, norms[0], norms[1], norms[2], qfac


# --- driver -----------------------------------------------------------------


def _reorient(
    img: bytes | bytearray,
    h: NiftiHeader,
    orient_vec: Vec3i,
    orient: Matrix,
    min_mm: Vec3,
) -> bytes | bytearray:
    nvox = h.dim[1] * h.dim[2] * h.dim[3]
    if nvox < 1:
        return img
    strides = {1: 1, 2: h.dim[1], 3: h.dim[1] * h.dim[2]}
    out_dim = tuple(h.dim[abs(v)] for v in orient_vec)
    out_inc = tuple(strides[abs(v)] * (-1 if v < 0 else 1) for v in orient_vec)
    nvol = 1
    for d in h.dim[4:8]:
        if d > 1:
            nvol *= d
    result = reorient_image(img, out_dim, out_inc, h.bitpix // 8, nvol)
    out_pix = [h.pixdim[abs(v)] for v in orient_vec]
    for i in range(3):
        h.dim[i + 1] = out_dim[i]
        h.pixdim[i + 1] = out_pix[i]
    s = h.sform()
    rotation = mat_mul33([row[:3] for row in s[:3]], orient)
    new_sform = [rotation[i] + [min_mm[i]] for i in range(3)] + [[0.0, 0.0, 0.0, 1.0]]
    h.set_sform(new_sform)
    h.qform_code = h.sform_code
    b, c, d, qx, qy, qz, _dx, _dy, _dz, qfac = _mat44_to_quatern(new_sform)
    h.quatern_b, h.quatern_c, h.quatern_d = b, c, d
    h.qoffset_x, h.qoffset_y, h.qoffset_z = qx, qy, qz
    h.pixdim[0] = qfac
    return result


def set_ortho(img: bytes | bytearray, header: NiftiHeader) -> bytes | bytearray:
    """Reslice an image to the closest canonical orientation.

    The header is updated in place; the image data is returned, unchanged when
    no reorientation applies.
    """
    h = header
    if h.dim[1] < 1 or h.dim[2] < 1 or h.dim[3] < 1:
        return img
    if h.sform_code == XFORM_UNKNOWN and h.qform_code != XFORM_UNKNOWN:
        q = _quatern_to_mat44(
            h.quatern_b, h.quatern_c, h.quatern_d,
            h.qoffset_x, h.qoffset_y, h.qoffset_z,
            h.pixdim[1], h.pixdim[2], h.pixdim[3], h.pixdim[0],
        )
        h.set_sform(q)
        h.sform_code = h.qform_code
    if h.sform_code == XFORM_UNKNOWN:
        return img
    s = h.sform()
    if is_canonical(s):
        return img
    min_mm, flip = min_corner_flip(h)
    orient = best_orient(s, flip)
    orient_vec = orient_vector(orient)
    if orient_vec == (1, 2, 3):
        return img
    if h.bitpix == 24:
        # planar RGB is left in its stored orientation
        return img
    return _reorient(img, h, orient_vec, orient, min_mm)