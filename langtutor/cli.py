"""
Command-line interface for langtutor.

Lists, downloads and deletes catalog models, and runs a chat or a single
greeting against one of them on the local machine.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .configs.model import ModelDescriptor
from .configs.settings import EngineSettings
from .exceptions import FetchError, LlmServiceError
from .inference.factory import create_llm_service
from .inference.service import LlmService
from .inference.state import Downloading, Error, Ready, ServiceState
from .models.catalog import ModelCatalog
from .models.fetcher import ModelFetcher
from .models.store import ModelStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "[langtutor] %(asctime)s %(levelname)s %(name)s: %(message)s"

RESET_COMMAND = "/reset"
QUIT_COMMANDS = ("/quit", "/exit")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="langtutor",
        description="On-device language tutor: model management and chat",
    )
    parser.add_argument("--config", type=Path, help="YAML file with engine settings")
    parser.add_argument("--models-dir", type=Path, help="Directory holding model files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("models", help="List catalog models and whether they are downloaded")

    download = subparsers.add_parser("download", help="Download a model file")
    download.add_argument("model_id", nargs="?", help="Catalog id (default model if omitted)")

    delete = subparsers.add_parser("delete", help="Delete a downloaded model file")
    delete.add_argument("model_id", help="Catalog id")

    chat = subparsers.add_parser("chat", help="Chat with a model on stdin/stdout")
    chat.add_argument("--model", dest="model_id", help="Catalog id (default model if omitted)")
    chat.add_argument("--language", default="English", help="Target language")
    chat.add_argument("--topic", help="Open the chat with a generated greeting on this topic")
    chat.add_argument("--conversation-id", default="cli", help="Conversation identifier")

    greet = subparsers.add_parser("greet", help="Print an opening message and exit")
    greet.add_argument("--model", dest="model_id", help="Catalog id (default model if omitted)")
    greet.add_argument("--topic", required=True, help="Conversation topic")
    greet.add_argument("--language", default="English", help="Target language")

    return parser


def load_settings(args: argparse.Namespace) -> EngineSettings:
    settings = EngineSettings.load(args.config)
    if args.models_dir:
        settings = replace(settings, models_dir=args.models_dir.expanduser())
    return settings


def load_catalog(settings: EngineSettings) -> ModelCatalog:
    if settings.catalog_path:
        catalog = ModelCatalog.from_yaml(settings.catalog_path)
        if settings.default_model_id:
            catalog = ModelCatalog(catalog.list_all(), default_id=settings.default_model_id)
        return catalog
    return ModelCatalog.builtin(settings.default_model_id)


def resolve_descriptor(catalog: ModelCatalog, model_id: str | None) -> ModelDescriptor:
    if model_id is None:
        return catalog.default()
    descriptor = catalog.get(model_id)
    if descriptor is None:
        known = ", ".join(d.id for d in catalog)
        raise SystemExit(f"Unknown model id: {model_id}. Available: {known}")
    return descriptor


def print_state(state: ServiceState) -> None:
    if isinstance(state, Downloading):
        print(f"\rDownloading {state.descriptor.name}: {state.progress}%", end="", file=sys.stderr)
        if state.progress >= 100:
            print(file=sys.stderr)
    else:
        print(f"[{state}]", file=sys.stderr)


def cmd_models(catalog: ModelCatalog, store: ModelStore) -> int:
    default_id = catalog.default().id
    local = {entry["model_id"]: entry for entry in store.list_local(catalog)}
    for descriptor in catalog:
        marker = "*" if descriptor.id == default_id else " "
        if descriptor.id in local:
            size_mb = local[descriptor.id]["size"] / (1024 * 1024)
            status = f"downloaded ({size_mb:.1f} MB)"
        else:
            status = "not downloaded"
        print(
            f"{marker} {descriptor.id:<45} {descriptor.runtime.value:<12} "
            f"{descriptor.name} [{status}]"
        )
    usage = store.get_disk_usage()
    used_mb = store.get_models_size() / (1024 * 1024)
    print(
        f"\nModels directory: {store.models_dir} "
        f"({used_mb:.1f} MB used, {usage['free'] / (1024 ** 3):.1f} GB free)"
    )
    return 0


async def cmd_download(descriptor: ModelDescriptor, fetcher: ModelFetcher) -> int:
    if fetcher.store.exists(descriptor):
        print(f"{descriptor.id} is already downloaded at {fetcher.store.local_path(descriptor)}")
        return 0

    def on_progress(percent: int) -> None:
        print(f"\rDownloading {descriptor.name}: {percent}%", end="", file=sys.stderr)

    try:
        path = await fetcher.fetch(descriptor, on_progress=on_progress)
    except FetchError as e:
        print(file=sys.stderr)
        logger.error("Download failed: %s", e.message)
        return 1
    print(file=sys.stderr)
    print(path)
    return 0


def cmd_delete(descriptor: ModelDescriptor, store: ModelStore) -> int:
    if store.delete(descriptor):
        print(f"Deleted {descriptor.id}")
        return 0
    print(f"{descriptor.id} is not downloaded", file=sys.stderr)
    return 1


async def _start(service: LlmService) -> bool:
    service.state_slot.subscribe(print_state)
    await service.initialize()
    state = service.state
    if isinstance(state, Error):
        logger.error("Could not start %s: %s", service.descriptor.id, state.message)
    return isinstance(state, Ready)


async def cmd_greet(service: LlmService, topic: str, language: str) -> int:
    async with service:
        if not await _start(service):
            return 1
        print(await service.get_initial_greeting(topic, language))
    return 0


async def cmd_chat(
    service: LlmService,
    language: str,
    conversation_id: str,
    topic: str | None = None,
) -> int:
    loop = asyncio.get_running_loop()
    async with service:
        if not await _start(service):
            return 1
        if topic:
            print(f"AI: {await service.get_initial_greeting(topic, language)}")
        print(f"Type {RESET_COMMAND} to start over, {QUIT_COMMANDS[0]} to leave.", file=sys.stderr)

        while True:
            print("> ", end="", flush=True)
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            prompt = line.strip()
            if not prompt:
                continue
            if prompt in QUIT_COMMANDS:
                break
            if prompt == RESET_COMMAND:
                await service.reset_session()
                if not isinstance(service.state, Ready):
                    return 1
                continue

            if service.descriptor.thinking_indicator:
                print("(thinking...)", file=sys.stderr)
            print("AI: ", end="", flush=True)
            try:
                async for chunk in service.generate_response(prompt, conversation_id, language):
                    print(chunk, end="", flush=True)
            except LlmServiceError as e:
                print()
                logger.error("Generation failed: %s", e.message)
                continue
            print()
    return 0


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args)
    catalog = load_catalog(settings)
    store = ModelStore(settings.models_dir)

    if args.command == "models":
        return cmd_models(catalog, store)

    descriptor = resolve_descriptor(catalog, args.model_id)
    if args.command == "delete":
        return cmd_delete(descriptor, store)

    fetcher = ModelFetcher.from_settings(store, settings)
    if args.command == "download":
        return await cmd_download(descriptor, fetcher)

    service = create_llm_service(descriptor, store, fetcher=fetcher, settings=settings)
    if args.command == "greet":
        return await cmd_greet(service, args.topic, args.language)
    return await cmd_chat(service, args.language, args.conversation_id, args.topic)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
