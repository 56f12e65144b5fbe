from .catalog import ProductVocabulary
from .products import ProductRecommender, generic_links
from .web_search import SearchResult, WebSearchProvider

__all__ = [
    "ProductRecommender",
    "ProductVocabulary",
    "SearchResult",
    "WebSearchProvider",
    "generic_links",
]
