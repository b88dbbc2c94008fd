"""Multi-Provider Generation Gateway.

Relays chat, image, video and speech requests to upstream AI providers:
  - Request Sanitizer (backtick stripping, speech text limits)
  - Credential Providers (static keys, Qianfan OAuth token store)
  - Provider Adapters (per-capability wire schemas + registry)
  - Upstream Invoker (single HTTP call, content-type decoding)
  - Response Normalizer (uniform envelope, quota → 429)
  - Task Poller (client-side video task lifecycle)
"""
