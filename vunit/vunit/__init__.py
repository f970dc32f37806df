from .vunit_config import VUnitConfig
