"""Services package for progress computation and scheduled ranking refresh."""
