"""
Streaming services for the Deepgram voice providers.

- text_segmenter: splits incremental text into sentences for synthesis
- stream_channel: bounded drop-on-full channel handed to callers
- stream_session: per-call socket lifecycle and guarded shutdown
- transport / deepgram_transport: the websocket capability and its SDK implementation
- stt_service / tts_service: the ingress and egress adapters

Data flow:

    caller audio ──▶ AudioStreamWriter ──▶ listen socket ─┐
                                                           │ SDK listener thread
    caller ◀── StreamChannel[StreamEvent] ◀── callbacks ◀──┘

    caller text ──▶ SentenceBuffer ──▶ speak socket ──────┐
                                                           │ SDK listener thread
    caller ◀── StreamChannel[StreamChunk] ◀── callbacks ◀──┘
"""
