"""LLM access package.

Architectural role:
    Provides provider configuration, request-body composition, stream decoding,
    and the upstream transport used by the API layer.

Module split:
    - `provider_config`: environment-driven provider table and relay settings.
    - `composer`: provider-specific request bodies.
    - `stream_decoder`: incremental line reassembly and chunk extraction.
    - `client`: HTTP transport and non-streaming text extraction.
    - `service`: request orchestration.
"""
