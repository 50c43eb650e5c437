from .summary import by_region, summarize

__all__ = ['by_region', 'summarize']
