"""
Benchmark suite for zplist bplist decoding performance.

Compares zplist against the standard library's plistlib:
- plistlib.loads (pure Python reference)
- zplist with string pooling
- zplist without string pooling

Measures decoding speed and memory usage across different document shapes.
"""
