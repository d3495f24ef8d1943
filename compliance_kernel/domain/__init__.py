"""Pure domain records for the compliance engine. Zero I/O."""
