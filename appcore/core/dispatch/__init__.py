from .dispatcher import ActionRoute, DispatchContext, RequestDispatcher

__all__ = ["ActionRoute", "DispatchContext", "RequestDispatcher"]
