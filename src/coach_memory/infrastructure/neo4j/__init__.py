from .driver import create_neo4j_driver, ensure_schema
from .filter_compiler import compile_filters

__all__ = ["compile_filters", "create_neo4j_driver", "ensure_schema"]
