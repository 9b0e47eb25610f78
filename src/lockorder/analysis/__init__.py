"""Static lock-order analysis subpackage."""
