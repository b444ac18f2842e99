"""
Proof Worker - Runs witness computation and proving in its own process.

Proving is CPU-bound and takes seconds, so it never runs on the caller's
control flow. The worker:
- Receives private inputs once, at start
- Reports progress with Status messages
- Ends with exactly one Ready or Failed
- Exits after a single request, taking the private inputs with it

Cancellation terminates the process. An in-flight proof is discarded.
"""

from __future__ import annotations
from typing import Callable, Iterator
import multiprocessing
import queue
import time

import structlog

from .backend import (
    TRANSCRIPT_MODE,
    PrivateInputs,
    ProofSystem,
    ReferenceProofSystem,
    public_output_bytes,
)
from .messages import ProofRequest, Status, Ready, Failed, WorkerMessage, is_terminal

log = structlog.get_logger()


class ProofGenerationError(Exception):
    """Raised by ProofWorker.generate when the worker reports Failed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Proof generation failed: {reason}")


def run_proof_job(
    request: ProofRequest,
    backend: ProofSystem,
    emit: Callable[[WorkerMessage], None],
):
    """
    Execute one proof request, reporting through `emit`.

    Always emits exactly one terminal message. Exceptions from the backend
    are reported as Failed and not re-raised; retrying is the caller's call.
    """
    try:
        emit(Status("Initialising proving backend..."))
        checked = request.validated()
        private = PrivateInputs(x=checked.x, y=checked.y, nullifier=checked.nullifier)

        emit(Status("Computing witness..."))
        witness = backend.execute(private, checked.public_input)

        emit(Status("Generating proof..."))
        proof, public_outputs = backend.prove(witness, TRANSCRIPT_MODE)
        public_output = public_output_bytes(public_outputs)
    except MemoryError:
        emit(Failed("out of memory while proving"))
        return
    except Exception as e:
        emit(Failed(str(e) or type(e).__name__))
        return

    emit(Ready(proof=bytes(proof), public_output=public_output))


def _worker_main(request: ProofRequest, backend: ProofSystem, outbox):
    run_proof_job(request, backend, outbox.put)


class ProofWorker:
    """
    Process-isolated proof generation for one request.

    Usage:
        worker = ProofWorker()
        worker.start(ProofRequest(x=3, y=5, nullifier=n, public_input=hash))
        for message in worker.messages():
            ...

        # or, blocking:
        ready = ProofWorker().generate(request, on_status=print)
    """

    def __init__(
        self,
        backend: ProofSystem | None = None,
        start_method: str = "spawn",
        poll_seconds: float = 0.1,
    ):
        self.backend = backend or ReferenceProofSystem()
        self._ctx = multiprocessing.get_context(start_method)
        self._poll_seconds = poll_seconds
        self._process = None
        self._outbox = None
        self._finished = False
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.is_alive()

    def start(self, request: ProofRequest):
        """Spawn the worker process. One request per worker."""
        if self._process is not None:
            raise RuntimeError("ProofWorker handles a single request; create a new one")
        self._outbox = self._ctx.Queue()
        self._process = self._ctx.Process(
            target=_worker_main,
            args=(request, self.backend, self._outbox),
            daemon=True,
        )
        self._process.start()
        log.info("proof_worker_started", pid=self._process.pid)

    def messages(self, timeout: float | None = None) -> Iterator[WorkerMessage]:
        """
        Yield messages until the terminal one.

        A worker that dies, outlives `timeout` or was cancelled yields a
        synthesized Failed.
        """
        if self._process is None:
            raise RuntimeError("ProofWorker.start() has not been called")
        deadline = None if timeout is None else time.monotonic() + timeout

        while not self._finished:
            if self._cancelled:
                message = Failed("proof generation cancelled")
            else:
                try:
                    message = self._outbox.get(timeout=self._poll_seconds)
                except queue.Empty:
                    if not self._process.is_alive():
                        # Drain anything posted just before exit.
                        try:
                            message = self._outbox.get(timeout=self._poll_seconds)
                        except queue.Empty:
                            message = Failed(
                                f"worker exited without a result (exit code {self._process.exitcode})"
                            )
                    elif deadline is not None and time.monotonic() > deadline:
                        self._terminate()
                        message = Failed(f"proof generation timed out after {timeout}s")
                    else:
                        continue

            if is_terminal(message):
                self._finished = True
                self._reap()
            yield message

    def generate(
        self,
        request: ProofRequest,
        on_status: Callable[[str], None] | None = None,
        timeout: float | None = None,
    ) -> Ready:
        """Run a request to completion; raise ProofGenerationError on Failed."""
        self.start(request)
        for message in self.messages(timeout=timeout):
            if isinstance(message, Status):
                if on_status:
                    on_status(message.text)
            elif isinstance(message, Ready):
                log.info("proof_ready", proof_bytes=len(message.proof))
                return message
            else:
                log.warning("proof_failed", reason=message.reason)
                raise ProofGenerationError(message.reason)
        raise ProofGenerationError("worker produced no terminal message")

    def cancel(self):
        """
        Terminate the worker. Any in-flight proof is lost.

        A later messages() call yields a single Failed and nothing the
        worker had already queued.
        """
        if self._finished:
            return
        self._terminate()
        self._cancelled = True
        log.info("proof_worker_cancelled")

    def _terminate(self):
        if self._process is not None and self._process.is_alive():
            self._process.terminate()
        self._reap()

    def _reap(self):
        if self._process is not None:
            self._process.join(timeout=5)

    def __enter__(self) -> ProofWorker:
        return self

    def __exit__(self, *exc):
        self.cancel()
