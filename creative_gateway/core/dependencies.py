from fastapi import Request

from creative_gateway.gateway.gateway import GenerationGateway


def get_gateway(request: Request) -> GenerationGateway:
    """The process-wide gateway built in the app lifespan."""
    return request.app.state.gateway
