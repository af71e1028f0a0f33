[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dcmkit"
version = "0.1.0"
description = "Pure-Python building blocks for medical image conversion: baseline JPEG decoding, JPEG-LS primitives and NIfTI reorientation"
requires-python = ">=3.10"
dependencies = []
keywords = ["dicom", "nifti", "jpeg", "jpeg-ls", "medical imaging", "reorientation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Healthcare Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Medical Science Apps.",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
dcmkit-jpeg = "dcmkit.jpeg_decoder:main"

[tool.hatch.build.targets.wheel]
packages = ["dcmkit"]

[tool.pytest.ini_options]
addopts = "-ra"
