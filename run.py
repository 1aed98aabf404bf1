#!/usr/bin/env python3
"""
Slice Uploader

Upload files to an S3-compatible bucket. Files above the slicing threshold
are uploaded as parallel slices and composed server-side; every object is
verified against a local CRC32C and re-uploaded on mismatch.

Usage:
    python run.py -b my-bucket big.bin                 # Upload one file
    python run.py -b my-bucket *.tar -q                # Quiet mode (summary only)
    python run.py -b my-bucket data.bin -j stats.json  # Output JSON results
    python run.py -b my-bucket data.bin --max-slices 16 --threads 32
"""

import sys
from slice_uploader.cli import main

if __name__ == "__main__":
    sys.exit(main())
