# dcmkit

Small, dependency-free Python pieces used when converting medical images:

- `dcmkit.jpeg_decoder` – a baseline JPEG decoder (8-bit samples, grayscale
  or three-component YCbCr with power-of-two chroma subsampling, restart
  intervals supported) and a command that writes PGM/PPM files.
- `dcmkit.jpeg_transform` – the integer IDCT (`row_idct`, `col_idct`), the
  bicubic chroma upsampling filters (`upsample_horizontal`,
  `upsample_vertical`), `ycbcr_to_rgb` and `clip`.
- `dcmkit.ortho` – reorients NIfTI volumes to the nearest orthogonal,
  canonical orientation and updates the header's s-form and q-form.
- `dcmkit.jpegls` – JPEG-LS building blocks: the `ApiResult`,
  `InterleaveMode` and `ColorTransformation` enums, `CharlsError`, parameter
  dataclasses (`JlsParameters`, `PresetCodingParameters`, `JfifParameters`,
  `JlsRect`), the `JlsContext` statistics and the `Code` / `CodeTable`
  lookup table for short Golomb codes.
- `dcmkit.bitreader` – `BitReader`, a JPEG-LS bit reader that handles 0xFF
  bit stuffing and stops at markers.
- `dcmkit.messages` – `print_message`, `print_warning` and `print_progress`
  write to standard output; `print_error` writes to standard error.

## Installation

```
pip install .
```

Python 3.10 or later is required. There are no runtime dependencies.

## Decoding a JPEG

```python
from dcmkit.jpeg_decoder import decode_jpeg, JpegError

with open("scan.jpg", "rb") as fh:
    data = fh.read()

try:
    image = decode_jpeg(data)
except JpegError as exc:
    print("cannot decode:", exc)
else:
    print(image.width, image.height, image.is_color, image.size())
    with open("scan.pnm", "wb") as out:
        out.write(image.to_netpbm())
```

`decode_jpeg` returns a `DecodedImage` whose `pixels` are 8-bit grayscale or
packed RGB, top-down, without row padding. Failures raise a subclass of
`JpegError`: `NotJpegError`, `UnsupportedJpegError`, `JpegSyntaxError` or
`JpegInternalError`. Progressive, lossless and 12-bit JPEG are reported as
unsupported.

From the command line, the same decoder writes a binary PGM (grayscale) or
PPM (colour) file:

```
dcmkit-jpeg input.jpg [output.pnm]
```

Without an output name it writes `nanojpeg_out.pgm` or `nanojpeg_out.ppm` in
the current directory. The exit status is 0 on success, 1 when a file cannot
be read, decoded or written, and 2 when no input is given.

## Reorienting a NIfTI volume

```python
from dcmkit.ortho import NiftiHeader, set_ortho

# a 2x2x2 8-bit volume whose X axis runs right to left
header = NiftiHeader(
    dim=[3, 2, 2, 2, 1, 1, 1, 1],
    bitpix=8,
    sform_code=1,
    srow_x=[-1.0, 0.0, 0.0, 1.0],
    srow_y=[0.0, 1.0, 0.0, 0.0],
    srow_z=[0.0, 0.0, 1.0, 0.0],
)
img = bytes(range(8))
img = set_ortho(img, header)   # voxel bytes rearranged, header updated in place
```

When only a q-form is set, it is turned into an s-form first. Images already
in canonical alignment, images without any spatial transform, and 24-bit RGB
images are returned unchanged. The lower-level helpers (`best_orient`,
`orient_vector`, `min_corner_flip`, `reorient_image`, `is_canonical`,
`mat_mul33`, ...) are available as well.

## What the package does not do

`dcmkit` does not read DICOM files or read and write NIfTI files, and it has
no command that converts a DICOM series: `NiftiHeader` holds only the spatial
fields that reorientation uses. `dcmkit.jpegls` and `dcmkit.bitreader` supply
pieces of a JPEG-LS decoder, not a complete one. There is no directory
scanning.

## Running the tests

```
pip install .[test]
pytest
```