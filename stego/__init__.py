"""stego - validate and compile manuscript projects."""

__version__ = "0.4.0"
