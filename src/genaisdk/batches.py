"""
Batch prediction jobs.

The Gemini API runs batches as long-running operations on
``batches/...``; Vertex AI runs them as ``batchPredictionJobs`` reading
from and writing to Cloud Storage or BigQuery. Both are surfaced as
``BatchJob``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from ._common import from_wire, http_response, iter_pages, list_params
from .backend import HttpBackend
from .exceptions import ConfigurationError
from .models import generate_request_body
from .types import (
    BatchJob,
    BatchJobDestination,
    BatchJobSource,
    CreateBatchJobConfig,
    DeleteResourceJob,
    HttpOptions,
    InlinedRequest,
    InlinedResponse,
    JobError,
    JobState,
    ListBatchJobsConfig,
    ListBatchJobsResponse,
)

logger = logging.getLogger(__name__)

# Gemini batch states mapped onto the shared job states
_BATCH_STATES = {
    "BATCH_STATE_UNSPECIFIED": JobState.JOB_STATE_UNSPECIFIED,
    "BATCH_STATE_PENDING": JobState.JOB_STATE_PENDING,
    "BATCH_STATE_RUNNING": JobState.JOB_STATE_RUNNING,
    "BATCH_STATE_SUCCEEDED": JobState.JOB_STATE_SUCCEEDED,
    "BATCH_STATE_FAILED": JobState.JOB_STATE_FAILED,
    "BATCH_STATE_CANCELLED": JobState.JOB_STATE_CANCELLED,
    "BATCH_STATE_EXPIRED": JobState.JOB_STATE_EXPIRED,
}


def _job_state(value: Any) -> JobState | str | None:
    if value is None:
        return None
    if value in _BATCH_STATES:
        return _BATCH_STATES[value]
    return from_wire(JobState, value)


def _parse_gemini_job(operation: dict[str, Any]) -> BatchJob:
    """Build a BatchJob from a Gemini batch operation."""
    job = BatchJob(name=operation.get("name"))
    metadata = operation.get("metadata")
    if not isinstance(metadata, dict):
        return job

    job.display_name = metadata.get("displayName")
    job.state = _job_state(metadata.get("state"))
    job.create_time = metadata.get("createTime")
    job.end_time = metadata.get("endTime")
    job.update_time = metadata.get("updateTime")
    job.model = metadata.get("model")
    if isinstance(operation.get("error"), dict):
        job.error = from_wire(JobError, operation["error"])

    output = metadata.get("output")
    if isinstance(output, dict):
        inlined = (output.get("inlinedResponses") or {}).get("inlinedResponses")
        job.dest = BatchJobDestination(
            file_name=output.get("responsesFile"),
            inlined_responses=from_wire(list[InlinedResponse], inlined),
        )
    return job


def _parse_vertex_job(data: dict[str, Any]) -> BatchJob:
    job = BatchJob(
        name=data.get("name"),
        display_name=data.get("displayName"),
        state=_job_state(data.get("state")),
        error=from_wire(JobError, data.get("error")),
        create_time=data.get("createTime"),
        start_time=data.get("startTime"),
        end_time=data.get("endTime"),
        update_time=data.get("updateTime"),
        model=data.get("model"),
    )

    source = data.get("inputConfig") or {}
    src = BatchJobSource(
        format=source.get("instancesFormat"),
        gcs_uri=(source.get("gcsSource") or {}).get("uris"),
        bigquery_uri=(source.get("bigquerySource") or {}).get("inputUri"),
    )
    if src.format or src.gcs_uri or src.bigquery_uri:
        job.src = src

    output = data.get("outputConfig") or {}
    dest = BatchJobDestination(
        format=output.get("predictionsFormat"),
        gcs_uri=(output.get("gcsDestination") or {}).get("outputUriPrefix"),
        bigquery_uri=(output.get("bigqueryDestination") or {}).get("outputUri"),
    )
    if dest.format or dest.gcs_uri or dest.bigquery_uri:
        job.dest = dest
    return job


class Batches:
    """Batch prediction jobs. Accessed as ``client.batches``."""

    def __init__(self, backend: HttpBackend) -> None:
        self._backend = backend

    # -------------------------------------------------------------------------
    # Names
    # -------------------------------------------------------------------------

    def _model_name(self, model: str) -> str:
        if not self._backend.is_vertex:
            if model.startswith(("models/", "tunedModels/")):
                return model
            return f"models/{model}"
        if model.startswith(("projects/", "publishers/", "models/")):
            return model
        if "/" in model:
            publisher, name = model.split("/", 1)
            return f"publishers/{publisher}/models/{name}"
        return f"publishers/google/models/{model}"

    def _job_name(self, name: str) -> str:
        if not self._backend.is_vertex:
            return name if name.startswith("batches/") else f"batches/{name}"
        if name.startswith("projects/"):
            return name
        if name.startswith("locations/"):
            return f"projects/{self._backend.config.project}/{name}"
        if name.startswith("batchPredictionJobs/"):
            return f"{self._backend.vertex_parent()}/{name}"
        return f"{self._backend.vertex_parent()}/batchPredictionJobs/{name}"

    def _collection(self) -> str:
        if self._backend.is_vertex:
            return f"{self._backend.vertex_parent()}/batchPredictionJobs"
        return "batches"

    def _parse_job(self, data: dict[str, Any]) -> BatchJob:
        if self._backend.is_vertex:
            return _parse_vertex_job(data)
        return _parse_gemini_job(data)

    # -------------------------------------------------------------------------
    # Request bodies
    # -------------------------------------------------------------------------

    def _inlined_request(self, request: InlinedRequest) -> dict[str, Any]:
        body = generate_request_body(request.contents, request.config)
        if request.model:
            body["model"] = self._model_name(request.model)
        entry: dict[str, Any] = {"request": body}
        if request.metadata is not None:
            entry["metadata"] = dict(request.metadata)
        return entry

    def _gemini_body(self, src: BatchJobSource, config: CreateBatchJobConfig) -> dict[str, Any]:
        if config.dest is not None:
            raise ConfigurationError(
                "dest is not supported in Gemini batch API", config_key="dest"
            )
        if src.format is not None or src.gcs_uri is not None or src.bigquery_uri is not None:
            raise ConfigurationError(
                "format/gcs_uri/bigquery_uri are not supported in Gemini batch API",
                config_key="src",
            )

        input_config: dict[str, Any] = {}
        if src.file_name is not None:
            input_config["fileName"] = src.file_name
        if src.inlined_requests is not None:
            requests = [self._inlined_request(request) for request in src.inlined_requests]
            input_config["requests"] = {"requests": requests}
        if not input_config:
            raise ConfigurationError(
                "BatchJobSource requires file_name or inlined_requests", config_key="src"
            )

        batch: dict[str, Any] = {"inputConfig": input_config}
        if config.display_name is not None:
            batch["displayName"] = config.display_name
        return {"batch": batch}

    def _vertex_body(
        self,
        model: str,
        src: BatchJobSource,
        config: CreateBatchJobConfig,
    ) -> dict[str, Any]:
        if src.file_name is not None or src.inlined_requests is not None:
            raise ConfigurationError(
                "file_name/inlined_requests are not supported in Vertex batch API",
                config_key="src",
            )
        input_config: dict[str, Any] = {}
        if src.format is not None:
            input_config["instancesFormat"] = src.format
        if src.gcs_uri is not None:
            input_config["gcsSource"] = {"uris": list(src.gcs_uri)}
        if src.bigquery_uri is not None:
            input_config["bigquerySource"] = {"inputUri": src.bigquery_uri}
        if not input_config:
            raise ConfigurationError(
                "BatchJobSource requires format + gcs_uri/bigquery_uri for Vertex",
                config_key="src",
            )

        dest = config.dest
        if dest is None:
            raise ConfigurationError("dest is required for Vertex batch API", config_key="dest")
        if isinstance(dest, str):
            dest = (
                BatchJobDestination(format="bigquery", bigquery_uri=dest)
                if dest.startswith("bq://")
                else BatchJobDestination(format="jsonl", gcs_uri=dest)
            )
        if dest.file_name is not None or dest.inlined_responses is not None:
            raise ConfigurationError(
                "file_name/inlined_responses are not supported in Vertex batch API",
                config_key="dest",
            )
        output_config: dict[str, Any] = {}
        if dest.format is not None:
            output_config["predictionsFormat"] = dest.format
        if dest.gcs_uri is not None:
            output_config["gcsDestination"] = {"outputUriPrefix": dest.gcs_uri}
        if dest.bigquery_uri is not None:
            output_config["bigqueryDestination"] = {"outputUri": dest.bigquery_uri}
        if not output_config:
            raise ConfigurationError(
                "BatchJobDestination requires format + gcs_uri/bigquery_uri for Vertex",
                config_key="dest",
            )

        body: dict[str, Any] = {
            "model": model,
            "inputConfig": input_config,
            "outputConfig": output_config,
        }
        if config.display_name is not None:
            body["displayName"] = config.display_name
        return body

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def create(
        self,
        model: str,
        src: BatchJobSource,
        config: CreateBatchJobConfig | None = None,
    ) -> BatchJob:
        """
        Create a batch job.

        Args:
            model: Model that serves the requests.
            src: Gemini: an uploaded JSONL file or inlined requests.
                Vertex AI: Cloud Storage URIs or a BigQuery table.
            config: Display name and, on Vertex AI, the destination.

        Raises:
            ConfigurationError: If the source or destination does not fit
                the backend.
        """
        config = config or CreateBatchJobConfig()
        model = self._model_name(model)
        if self._backend.is_vertex:
            body = self._vertex_body(model, src, config)
            path = self._collection()
        else:
            body = self._gemini_body(src, config)
            path = f"{model}:batchGenerateContent"

        data, _ = await self._backend.request_json(
            "POST",
            self._backend.url(path, config.http_options),
            json=body,
            http_options=config.http_options,
        )
        job = self._parse_job(data)
        logger.debug(f"Created batch job {job.name}")
        return job

    async def get(self, name: str, http_options: HttpOptions | None = None) -> BatchJob:
        data, _ = await self._backend.request_json(
            "GET",
            self._backend.url(self._job_name(name), http_options),
            http_options=http_options,
        )
        return self._parse_job(data)

    async def cancel(self, name: str, http_options: HttpOptions | None = None) -> None:
        await self._backend.request(
            "POST",
            self._backend.url(f"{self._job_name(name)}:cancel", http_options),
            json={},
            http_options=http_options,
        )

    async def delete(
        self,
        name: str,
        http_options: HttpOptions | None = None,
    ) -> DeleteResourceJob:
        data, response = await self._backend.request_json(
            "DELETE",
            self._backend.url(self._job_name(name), http_options),
            http_options=http_options,
        )
        result: DeleteResourceJob = from_wire(DeleteResourceJob, data)
        result.sdk_http_response = http_response(response)
        return result

    async def list(self, config: ListBatchJobsConfig | None = None) -> ListBatchJobsResponse:
        """List one page of batch jobs. ``filter`` is only honoured on Vertex AI."""
        if config is not None and config.filter and not self._backend.is_vertex:
            raise ConfigurationError(
                "filter is not supported for Gemini API batch list", config_key="filter"
            )

        http_options = config.http_options if config else None
        data, response = await self._backend.request_json(
            "GET",
            self._backend.url(self._collection(), http_options),
            params=list_params(config),
            http_options=http_options,
        )
        key = "batchPredictionJobs" if self._backend.is_vertex else "operations"
        return ListBatchJobsResponse(
            sdk_http_response=http_response(response),
            next_page_token=data.get("nextPageToken"),
            batch_jobs=[self._parse_job(item) for item in data.get(key) or []],
        )

    async def all(self, config: ListBatchJobsConfig | None = None) -> AsyncIterator[BatchJob]:
        """Iterate over batch jobs across every page."""
        async for job in iter_pages(self.list, config or ListBatchJobsConfig(), "batch_jobs"):
            yield job

