#!/usr/bin/env python3
"""
Streaming Client - Entry Point
==============================

This script runs one plate-recognition streaming job end to end:
- Opens the session WebSocket to the processing service
- Uploads a source video for the session
- Follows progress, detections and unique plates as they stream in
- Accepts operator commands on stdin (pause, resume, stop, ...)
- Optionally mirrors session status to MQTT
- Downloads the result artifact when the job completes

Usage:
    python run_streaming_client.py parking.mp4 --config config/client.yaml

Architecture:
    - StreamingClient: Session coordinator (platestream_ws)
    - StreamingApiClient: Upload / download (platestream_api)
    - CommandRegistry: Operator console commands (platestream_control)
    - StatusPublisher: MQTT status mirror (platestream_control)

Lifecycle:
    1. Load configuration from YAML (CLI flags override)
    2. Setup logging (console + file)
    3. Create coordinator, command registry, optional status mirror
    4. Connect and wait for the session to open
    5. Upload the source video
    6. Wait for completed / stopped / error (or a stop signal)
    7. Download results (optional)
    8. Graceful shutdown

Signals:
    - SIGTERM: Graceful shutdown
    - SIGINT (Ctrl+C): Graceful shutdown

Logs:
    - Console: INFO level
    - File: logs/streaming_client.log (INFO level)
    - Coordinator events: structured JSON (platestream.* loggers)
"""

import argparse
import dataclasses
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from platestream_api import RESULT_FORMATS, StreamingApiError
from platestream_control import CommandNotAvailableError, CommandRegistry, StatusPublisher
from platestream_ws import (
    ClientConfig,
    DebugConsole,
    InvalidStateError,
    MessageType,
    StreamingClient,
    StreamingState,
    StreamingStatus,
    create_logger,
    filter_plates,
    sort_plates,
)

FINISHED_STATUSES = {StreamingStatus.COMPLETED, StreamingStatus.STOPPED}


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging for the streaming client.

    Args:
        log_file: Optional path to log file (default: logs/streaming_client.log)

    Returns:
        Logger instance for the app
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Main Application
# ─────────────────────────────────────────────────────────────────────────────

class StreamingApp:
    """
    Main application wrapper for one streaming job.

    Handles:
    - Configuration loading
    - Component initialization (coordinator, commands, status mirror)
    - Operator console
    - Signal handling (SIGTERM, SIGINT)
    - Graceful shutdown
    """

    def __init__(
        self,
        video: Path,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
        log_file: Optional[Path] = None,
        download_format: Optional[str] = None,
        output_dir: Path = Path('.'),
        interactive: bool = True,
        connect_timeout: float = 15.0,
        debug_export: Optional[Path] = None,
    ):
        """
        Initialize streaming application.

        Args:
            video: Source video to upload
            config_path: Optional client configuration YAML
            overrides: ClientConfig fields overriding the YAML values
            log_file: Optional path to log file
            download_format: json/csv to download results on completion, None to skip
            output_dir: Destination for downloaded results
            interactive: Read operator commands from stdin
            connect_timeout: Seconds to wait for the session to open
            debug_export: Write the debug console entries here on shutdown
        """
        self.video = video
        self.config_path = config_path
        self.overrides = overrides or {}
        self.download_format = download_format
        self.output_dir = output_dir
        self.interactive = interactive
        self.connect_timeout = connect_timeout
        self.debug_export = debug_export
        self.logger = setup_logging(log_file)

        # Components (initialized in setup())
        self.config: Optional[ClientConfig] = None
        self.client: Optional[StreamingClient] = None
        self.commands = CommandRegistry()
        self.status_publisher: Optional[StatusPublisher] = None
        self.console = DebugConsole()

        # Run state
        self._connected = threading.Event()
        self._finished = threading.Event()
        self._last_percent = -1
        self._shutdown_requested = False

    def setup(self):
        """
        Setup all components.

        Steps:
        1. Load configuration from YAML, apply CLI overrides
        2. Create structured logger + debug console
        3. Create StreamingClient and subscribe to job events
        4. Register operator commands
        5. Create status mirror (if MQTT configured)
        """
        self.logger.info("=" * 80)
        self.logger.info("🚀 platestream Streaming Client - Starting")
        self.logger.info("=" * 80)

        # 1. Load configuration
        if self.config_path:
            self.logger.info(f"📄 Loading configuration: {self.config_path}")
            config = ClientConfig.from_yaml(self.config_path)
        else:
            config = ClientConfig()
        if self.overrides:
            config = dataclasses.replace(config, **self.overrides)
        self.config = config
        self.logger.info(f"✅ Configuration loaded (client_id={config.client_id})")
        self.logger.info(f"  - WebSocket: {config.ws_base_url}")
        self.logger.info(f"  - API: {config.api_base_url}")

        # 2. Structured logger for the coordinator
        coordinator_logger = create_logger(component="streaming_client")
        self.console.attach(coordinator_logger)

        # 3. Coordinator
        self.client = StreamingClient(config=config, logger=coordinator_logger)
        self.client.add_state_listener(self._on_state)
        self.client.on_message(MessageType.STREAMING_UPDATE, self._on_update)
        self.client.on_message(MessageType.STREAMING_COMPLETED, self._on_completed)
        self.client.on_message(MessageType.STREAMING_ERROR, self._on_streaming_error)
        self.client.on_message(MessageType.SYSTEM_MESSAGE, self._on_system_message)
        self.logger.info("✅ Coordinator created")

        # 4. Operator commands
        self._register_commands()
        self.logger.info(f"✅ {self.commands.count()} console commands registered")

        # 5. Status mirror
        if config.mqtt_config:
            self.logger.info("📤 Creating MQTT status mirror")
            self.status_publisher = StatusPublisher(config.mqtt_config, client_id=config.client_id)

        self.logger.info("=" * 80)

    def _register_commands(self):
        client = self.client
        registry = self.commands
        registry.register('pause', self._cmd_pause, "Pause processing", aliases=('p',))
        registry.register('resume', self._cmd_resume, "Resume processing", aliases=('r',))
        registry.register('stop', self._cmd_stop, "Stop processing", aliases=('s',))
        registry.register('status', self._cmd_status, "Request backend status and print local state")
        registry.register('clear', client.clear_error, "Clear the last error")
        registry.register('summary', self._cmd_summary, "Plate statistics")
        registry.register('plates', self._cmd_plates, "List plates [all|six_char|valid|high_confidence] [confidence|detection_count|frame_range|alphabetical]")
        registry.register('download', self._cmd_download, f"Download results [{'|'.join(RESULT_FORMATS)}]")
        registry.register('help', self._cmd_help, "Show commands", aliases=('h', '?'))
        registry.register('quit', self._finished.set, "Stop waiting and shut down", aliases=('q', 'exit'))

    def run(self):
        """
        Run one streaming job.

        Blocks until the job finishes or shutdown is requested.
        """
        if not self.client:
            raise RuntimeError("Client not initialized. Call setup() first.")

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            if self.status_publisher and self.status_publisher.connect(timeout=5.0):
                self.status_publisher.attach(self.client.store)

            self.client.connect()
            if not self._connected.wait(timeout=self.connect_timeout):
                error = self.client.state.error or "timeout"
                self.logger.error(f"❌ Could not open session ({error})")
                self.shutdown()
                sys.exit(1)

            self.logger.info(f"🔗 Session open: {self.client.session_id}")
            self.logger.info(f"📤 Uploading {self.video}")
            response = self.client.start_streaming(self.video)
            self.logger.info(f"✅ Upload accepted: {response.get('message', 'ok')}")

            if self.interactive:
                self._start_console()

            while not self._finished.wait(timeout=1.0):
                if self.client.connection_lost():
                    self.logger.error(f"❌ Connection lost: {self.client.state.error or 'closed'}")
                    break
            self._report()

            if self.download_format and self.client.state.status == StreamingStatus.COMPLETED:
                self._cmd_download(self.download_format)

            self.shutdown()

        except (StreamingApiError, InvalidStateError) as e:
            self.logger.error(f"❌ {e}")
            self.shutdown()
            sys.exit(1)

        except KeyboardInterrupt:
            self.logger.info("\n⚠️  KeyboardInterrupt received")
            self.shutdown()

    def shutdown(self):
        """
        Graceful shutdown of all components.

        Order:
        1. Close the coordinator (disconnect + HTTP client)
        2. Disconnect the status mirror
        3. Export debug console (optional)
        """
        if self._shutdown_requested:
            self.logger.warning("⚠️  Shutdown already in progress")
            return

        self._shutdown_requested = True
        self._finished.set()

        self.logger.info("=" * 80)
        self.logger.info("🛑 Shutting down streaming client")
        self.logger.info("=" * 80)

        if self.client:
            try:
                self.client.close()
                self.logger.info("✅ Coordinator closed")
            except Exception as e:
                self.logger.error(f"❌ Error closing coordinator: {e}")

        if self.status_publisher:
            try:
                self.status_publisher.disconnect()
                self.logger.info("✅ Status mirror disconnected")
            except Exception as e:
                self.logger.error(f"❌ Error disconnecting status mirror: {e}")

        if self.debug_export:
            try:
                path = self.console.export_json(self.debug_export)
                self.logger.info(f"📝 Debug log exported to {path}")
            except OSError as e:
                self.logger.error(f"❌ Error exporting debug log: {e}")

        self.logger.info("=" * 80)
        self.logger.info("✅ Shutdown complete")
        self.logger.info("=" * 80)

    # ===== Coordinator callbacks =====

    def _on_state(self, state: StreamingState):
        if state.is_connected:
            self._connected.set()
        if state.status in FINISHED_STATUSES:
            self._finished.set()

    def _on_update(self, data: Dict[str, Any]):
        progress = data.get('progress') or {}
        percent = int(progress.get('progress_percent') or 0)
        if percent // 10 != self._last_percent // 10:
            self._last_percent = percent
            self.logger.info(
                f"📊 {percent}% ({progress.get('processed_frames', 0)}/{progress.get('total_frames', 0)} frames, "
                f"{len(self.client.state.unique_plates)} plates)"
            )

    def _on_completed(self, data: Dict[str, Any]):
        self.logger.info("🏁 Processing completed")

    def _on_streaming_error(self, data: Dict[str, Any]):
        self.logger.error(f"❌ Streaming error: {data.get('message', 'unknown')}")
        self._finished.set()

    def _on_system_message(self, data: Dict[str, Any]):
        self.logger.info(f"💬 {data.get('message', data)}")

    # ===== Operator console =====

    def _start_console(self):
        thread = threading.Thread(target=self._console_loop, name="operator-console", daemon=True)
        thread.start()
        self.logger.info("⌨️  Console ready, type 'help' for commands")

    def _console_loop(self):
        while not self._finished.is_set():
            try:
                line = input()
            except EOFError:
                return
            try:
                self.commands.execute_line(line)
            except CommandNotAvailableError as e:
                self.logger.warning(f"⚠️ {e}")
            except (TypeError, ValueError) as e:
                self.logger.warning(f"⚠️ Invalid arguments: {e}")
            except StreamingApiError as e:
                self.logger.error(f"❌ {e}")

    def _report_sent(self, command: str, sent: bool):
        if sent:
            self.logger.info(f"📨 {command} sent")
        else:
            self.logger.warning(f"⚠️ {command} not sent (connection not open)")

    def _cmd_pause(self):
        self._report_sent("pause", self.client.pause_streaming())

    def _cmd_resume(self):
        self._report_sent("resume", self.client.resume_streaming())

    def _cmd_stop(self):
        self._report_sent("stop", self.client.stop_streaming())

    def _cmd_status(self):
        self._report_sent("get_status", self.client.request_status())
        state = self.client.state.to_dict()
        state['current_frame'] = None
        state['detections'] = len(state['detections'])
        state['unique_plates'] = len(state['unique_plates'])
        print(json.dumps(state, indent=2))

    def _cmd_summary(self):
        print(json.dumps(self.client.summary().to_dict(), indent=2))

    def _cmd_plates(self, kind: str = "all", by: str = "confidence"):
        plates = sort_plates(filter_plates(self.client.state.unique_plates, kind), by)
        for plate in plates:
            print(
                f"  {plate.get('plate_text', '?'):<10} "
                f"conf={float(plate.get('best_confidence') or 0):.2f} "
                f"seen={plate.get('detection_count', 0)}"
            )
        print(f"  ({len(plates)} plates)")

    def _cmd_download(self, fmt: str = "json"):
        path = self.client.download_results(fmt=fmt, dest_dir=self.output_dir)
        self.logger.info(f"💾 Results saved to {path}")

    def _cmd_help(self):
        print(self.commands.format_help())

    def _report(self):
        state = self.client.state
        self.logger.info("=" * 80)
        self.logger.info(f"📋 Final status: {state.status.value}")
        if state.error:
            self.logger.info(f"  - Error: {state.error}")
        self.logger.info(f"  - Progress: {state.progress.percent:.1f}%")
        self.logger.info(f"  - {self.client.summary()}")

    def _signal_handler(self, signum, frame):
        """
        Handle shutdown signals (SIGTERM, SIGINT).

        Args:
            signum: Signal number
            frame: Current stack frame (unused)
        """
        signal_name = signal.Signals(signum).name
        self.logger.info(f"\n⚠️  Received signal {signal_name} ({signum})")
        self.shutdown()
        sys.exit(0)


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args():
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace with parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="platestream Streaming Client - upload a video and follow plate recognition live",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Defaults (service on localhost:8000)
  python run_streaming_client.py parking.mp4

  # With config and result download
  python run_streaming_client.py parking.mp4 --config config/client.yaml --download csv -o results/

  # Remote service, no console, no file logging
  python run_streaming_client.py parking.mp4 --ws-url ws://alpr.local:8000 --api-url http://alpr.local:8000 --no-console --no-log-file
        """
    )

    parser.add_argument('video', type=Path, help='Source video to upload')
    parser.add_argument('--config', type=Path, help='Path to client configuration YAML file')
    parser.add_argument('--ws-url', help='WebSocket base URL (overrides config)')
    parser.add_argument('--api-url', help='REST base URL (overrides config)')
    parser.add_argument('--client-id', help='Client identifier (overrides config)')
    parser.add_argument(
        '--download',
        choices=RESULT_FORMATS,
        help='Download results in this format when the job completes'
    )
    parser.add_argument(
        '-o', '--output-dir',
        type=Path,
        default=Path('.'),
        help='Directory for downloaded results (default: current directory)'
    )
    parser.add_argument(
        '--connect-timeout',
        type=float,
        default=15.0,
        help='Seconds to wait for the session to open (default: 15)'
    )
    parser.add_argument('--no-console', action='store_true', help='Do not read commands from stdin')
    parser.add_argument(
        '--debug-export',
        type=Path,
        help='Write the last coordinator log entries as JSON on shutdown'
    )
    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/streaming_client.log'),
        help='Path to log file (default: logs/streaming_client.log)'
    )
    parser.add_argument('--no-log-file', action='store_true', help='Disable file logging (console only)')

    return parser.parse_args()


def main():
    """
    Main entry point.

    Workflow:
    1. Parse CLI arguments
    2. Create StreamingApp
    3. Setup components
    4. Run the job (blocks until finished)
    """
    args = parse_args()

    log_file = None if args.no_log_file else args.log_file

    if not args.video.exists():
        print(f"❌ Error: Video file not found: {args.video}", file=sys.stderr)
        sys.exit(1)

    if args.config and not args.config.exists():
        print(f"❌ Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    overrides = {
        key: value
        for key, value in (
            ('ws_base_url', args.ws_url),
            ('api_base_url', args.api_url),
            ('client_id', args.client_id),
        )
        if value
    }

    app = StreamingApp(
        video=args.video,
        config_path=args.config,
        overrides=overrides,
        log_file=log_file,
        download_format=args.download,
        output_dir=args.output_dir,
        interactive=not args.no_console,
        connect_timeout=args.connect_timeout,
        debug_export=args.debug_export,
    )

    try:
        app.setup()
        app.run()
    except Exception as e:
        print(f"❌ Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
