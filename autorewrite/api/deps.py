from fastapi import Request

from autorewrite.services.context import EnrichmentContext


def get_context(request: Request) -> EnrichmentContext:
    return request.app.state.context
