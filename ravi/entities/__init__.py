"""Entity aliasing, canonical keys and mention detection.

Use explicit imports:
    from ravi.entities.resolver import Entity, resolve_entity, canonical_key, build_aliases
    from ravi.entities.mentions import MentionDetector, is_mentioned
"""
