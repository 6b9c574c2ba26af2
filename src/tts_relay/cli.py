"""
Command-Line Interface for tts-relay.

Synthesizes text straight to MP3 files without running the HTTP server,
or starts the server.

Usage Examples:
    # Single text
    tts-relay "你好，世界！" --model tts-1-shimmer --out hello.mp3

    # Batch: one line per output file in out_dir/
    tts-relay --file inputs.txt --voice zh-CN-YunxiNeural --out out_dir/

    # Write each batch window to disk as it arrives
    tts-relay --text "..." --voice nova --stream --out long.mp3

    # Show cleaning and chunking without calling the provider
    tts-relay --text "**Hi** there 1." --voice nova --dry-run --json

    # Run the HTTP server
    tts-relay --serve --host 0.0.0.0 --port 8000

Environment Variables:
    TTS_RELAY_SETTINGS: settings.yaml path (default config/settings.yaml)
    TTS_RELAY_LOG_LEVEL: 1-4
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from tts_relay.core.config import load_settings
from tts_relay.core.errors import RelayError
from tts_relay.core.logging import configure_logging, fail, get_logger, info, set_request_id
from tts_relay.services.speech_service import SpeechService, SynthesisRequest
from tts_relay.services.validators import build_synthesis_request
from tts_relay.tts.batcher import window_count
from tts_relay.tts.chunker import smart_chunk_text
from tts_relay.tts.sink import FileAudioSink
from tts_relay.utils.text import CleaningOptions, clean_text


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="tts-relay CLI (Edge speech relay)")

    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--file", help="Batch input file (1 line = 1 item)")
    parser.add_argument("--out", help="Output path (file, or dir in batch mode)")
    parser.add_argument("--settings", help="settings.yaml path")

    # Voice
    parser.add_argument("--model", help="Model id, e.g. tts-1-nova")
    parser.add_argument("--voice", help="Provider voice id or alias")
    parser.add_argument("--speed", type=float, default=1.0, help="Speed factor (0.25-2.0)")
    parser.add_argument("--pitch", type=float, default=1.0, help="Pitch factor")
    parser.add_argument("--style", help="Speaking style (default general)")

    # Batching
    parser.add_argument("--concurrency", type=int, help="Chunks synthesized at once")
    parser.add_argument("--chunk-size", type=int, help="Target max characters per chunk")
    parser.add_argument("--stream", action="store_true", help="Write each window as it completes")

    # Cleaning
    parser.add_argument("--keep-markdown", action="store_true", help="Do not strip markdown")
    parser.add_argument("--keep-emoji", action="store_true", help="Do not strip emoji")
    parser.add_argument("--keep-urls", action="store_true", help="Do not strip URLs")
    parser.add_argument("--keep-line-breaks", action="store_true", help="Do not collapse whitespace")
    parser.add_argument("--keep-citations", action="store_true", help="Do not strip citation numbers")
    parser.add_argument("--keywords", default="", help="Comma separated strings to remove")

    # Execution modes
    parser.add_argument("--dry-run", action="store_true", help="Clean and chunk only, no synthesis")
    parser.add_argument("--json", action="store_true", help="Print JSON summary")

    # Server
    parser.add_argument("--serve", action="store_true", help="Run the HTTP server")
    parser.add_argument("--host", default="127.0.0.1", help="Server bind host")
    parser.add_argument("--port", type=int, default=8000, help="Server bind port")

    return parser.parse_args(argv)


def _load_texts(args: argparse.Namespace) -> List[str]:
    """
    Load input texts from arguments or file.

    Raises:
        SystemExit: If no input provided or conflicting options used.
    """
    text = args.text or args.text_pos

    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        lines = Path(args.file).read_text(encoding="utf-8").splitlines()
        items = [line.strip() for line in lines if line.strip()]
        if not items:
            raise SystemExit("Input file is empty.")
        return items

    if not text:
        raise SystemExit("Provide --text or a positional text.")
    return [text]


def _resolve_output_paths(args: argparse.Namespace, count: int) -> List[Path]:
    if args.file:
        out_dir = Path(args.out or "out")
        out_dir.mkdir(parents=True, exist_ok=True)
        return [out_dir / f"item_{i + 1:03d}.mp3" for i in range(count)]

    out_path = Path(args.out or "out.mp3")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    return [out_path]


def _cleaning_from_args(args: argparse.Namespace) -> CleaningOptions:
    return CleaningOptions(
        remove_markdown=not args.keep_markdown,
        remove_emoji=not args.keep_emoji,
        remove_urls=not args.keep_urls,
        remove_line_breaks=not args.keep_line_breaks,
        remove_citation_numbers=not args.keep_citations,
        custom_keywords=args.keywords,
    )


def _summary_for_request(request: SynthesisRequest) -> dict:
    """Dry-run view of one request: cleaned text, chunks and windows."""
    cleaned = clean_text(request.text, request.cleaning)
    chunks = smart_chunk_text(cleaned, request.chunk_size).chunks
    return {
        "text_len": len(request.text),
        "cleaned_len": len(cleaned),
        "voice": request.voice,
        "rate": request.rate_percent,
        "pitch": request.pitch_percent,
        "style": request.style,
        "chunks": chunks,
        "windows": window_count(len(chunks), request.concurrency),
    }


async def _synthesize_all(
    service: SpeechService,
    requests: List[SynthesisRequest],
    out_paths: List[Path],
    log,
) -> List[dict]:
    results = []
    try:
        for request, out_path in zip(requests, out_paths):
            rid = str(uuid4())[:12]
            set_request_id(rid)
            info(log, "synth_start", chars=len(request.text), out=str(out_path), mode="stream" if request.stream else "buffered")

            if request.stream:
                sink = FileAudioSink(out_path)
                stats = await service.stream_to(request, sink)
                results.append({"out": str(out_path), "bytes": stats.audio_bytes, "chunks": stats.chunks})
            else:
                result = await service.synthesize(request, rid)
                out_path.write_bytes(result.audio)
                results.append({"out": str(out_path), "bytes": len(result.audio), "chunks": result.chunks})
    finally:
        await service.aclose()
    return results


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for a synthesis failure).
    """
    args = _parse_args(argv)

    configure_logging()
    log = get_logger("tts-relay.cli")

    if args.serve:
        import uvicorn

        uvicorn.run("tts_relay.main:app", host=args.host, port=args.port)
        return 0

    set_request_id(str(uuid4())[:12])

    settings = load_settings(args.settings, missing_ok=args.settings is None)
    config = settings.get_relay_config()

    texts = _load_texts(args)
    cleaning = _cleaning_from_args(args)

    try:
        requests = [
            build_synthesis_request(
                text,
                model=args.model,
                voice=args.voice,
                speed=args.speed,
                pitch=args.pitch,
                style=args.style,
                stream=args.stream,
                concurrency=args.concurrency,
                chunk_size=args.chunk_size,
                cleaning=cleaning,
                config=config,
            )
            for text in texts
        ]
    except RelayError as e:
        raise SystemExit(e.message)

    if args.dry_run:
        summaries = [_summary_for_request(r) for r in requests]
        payload = {"ok": True, "dry_run": True, "items": summaries}

        if args.json:
            print(json.dumps(payload, ensure_ascii=False))
        else:
            info(log, "dry_run", items=len(requests))
            print(payload)
        print("DRY_RUN_OK")
        return 0

    out_paths = _resolve_output_paths(args, len(texts))
    service = SpeechService(settings)

    try:
        results = asyncio.run(_synthesize_all(service, requests, out_paths, log))
    except RelayError as e:
        fail(log, "cli_failed", code=e.code, error=e.message)
        payload = {"ok": False, "error": e.to_dict()["error"]}
        if args.json:
            print(json.dumps(payload, ensure_ascii=False))
        else:
            print(payload)
        return 1

    payload = {"ok": True, "dry_run": False, "items": results}
    if args.json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
