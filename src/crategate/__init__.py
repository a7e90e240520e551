"""crategate - coding-standards scanner and staged safety gate for Rust crates."""

__version__ = "0.1.0"
