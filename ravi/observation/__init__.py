"""Provider and search access for visibility runs.

Use explicit imports:
    from ravi.observation.providers import TextProvider, ProviderConfig, get_provider
    from ravi.observation.gateway import ProviderGateway, with_timeout
    from ravi.observation.search import SearchClient, GoogleSearchClient
    from ravi.observation.models import ProviderType, ProviderResponse, Query
    from ravi.observation.parser import quick_sentiment_score, prominence_factor
"""
