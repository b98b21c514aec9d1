# Routes package for the antique appraiser
from .analysis import router as analysis_router
from .speech import router as speech_router
from .valuations import router as valuations_router
from .payments import router as payments_router
from .pages import router as pages_router

__all__ = [
    'analysis_router',
    'speech_router',
    'valuations_router',
    'payments_router',
    'pages_router',
]
