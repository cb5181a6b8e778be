from shopforge.testing.fixtures import memory_app  # noqa: F401
