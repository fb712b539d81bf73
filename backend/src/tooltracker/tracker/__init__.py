"""Read/edit view over the tracker store."""
