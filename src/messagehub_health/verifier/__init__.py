"""Feed verification: configuration, platform binding and the verification protocol."""
