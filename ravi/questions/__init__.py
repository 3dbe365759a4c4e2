"""Probe query generation.

Use explicit imports:
    from ravi.questions.pool import GeoContext, build_query_pool
    from ravi.questions.context import detect_industry_and_product
"""
