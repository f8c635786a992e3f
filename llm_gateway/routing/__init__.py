from llm_gateway.routing.router import ModelFetchResult, ModelRouter, RouteResolution

__all__ = ["ModelFetchResult", "ModelRouter", "RouteResolution"]
