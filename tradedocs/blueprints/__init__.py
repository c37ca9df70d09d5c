"""Blueprint packages. Each subpackage exposes its Blueprint object for create_app()."""
