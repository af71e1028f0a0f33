"""Building blocks for medical image conversion: baseline JPEG decoding, JPEG-LS primitives, NIfTI reorientation and console messages."""

__version__ = "0.1.0"