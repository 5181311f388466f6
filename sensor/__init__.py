from .base import (
    SensorConfig,
    build_sensor_config,
    BaseSensor,
    register_sensor,
    create_sensor,
    create_sensor_from_loaded_config,
)

__all__ = [
    "SensorConfig",
    "build_sensor_config",
    "BaseSensor",
    "register_sensor",
    "create_sensor",
    "create_sensor_from_loaded_config",
]
