from elearning.health.router import router


__all__ = ["router"]
