"""
Model tuning jobs.

On the Gemini API a tuning job is a ``tunedModels/...`` resource trained
from inline examples. On Vertex AI it is a ``tuningJobs/...`` resource
trained from a Cloud Storage or Vertex dataset.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from ._common import from_wire, http_response, iter_pages, list_params, to_wire
from .backend import HttpBackend
from .exceptions import ConfigurationError
from .types import (
    CreateTuningJobConfig,
    HttpOptions,
    JobState,
    ListTuningJobsConfig,
    ListTuningJobsResponse,
    TunedModel,
    TuningDataset,
    TuningJob,
    TuningMethod,
)

logger = logging.getLogger(__name__)

# Gemini tuned model states mapped onto job states
_TUNED_MODEL_STATES = {
    "STATE_UNSPECIFIED": JobState.JOB_STATE_UNSPECIFIED,
    "CREATING": JobState.JOB_STATE_RUNNING,
    "ACTIVE": JobState.JOB_STATE_SUCCEEDED,
    "FAILED": JobState.JOB_STATE_FAILED,
}

# Config fields the Gemini API does not accept
_GEMINI_UNSUPPORTED = (
    "validation_dataset",
    "description",
    "export_last_checkpoint_only",
    "pre_tuned_model_checkpoint_id",
    "adapter_size",
    "evaluation_config",
    "labels",
    "beta",
)


def _parse_tuned_model(data: dict[str, Any]) -> TuningJob:
    """Build a TuningJob from a Gemini ``tunedModels`` resource."""
    name = data.get("name")
    task = data.get("tuningTask") or {}
    return TuningJob(
        name=name,
        state=_TUNED_MODEL_STATES.get(data.get("state")),
        create_time=data.get("createTime"),
        start_time=task.get("startTime"),
        end_time=task.get("completeTime"),
        update_time=data.get("updateTime"),
        description=data.get("description"),
        base_model=data.get("baseModel"),
        tuned_model=TunedModel(model=name, endpoint=name) if name else None,
        tuned_model_display_name=data.get("displayName"),
    )


class Tunings:
    """Tuning jobs. Accessed as ``client.tunings``."""

    def __init__(self, backend: HttpBackend) -> None:
        self._backend = backend

    def _collection(self) -> str:
        if self._backend.is_vertex:
            return f"{self._backend.vertex_parent()}/tuningJobs"
        return "tunedModels"

    def _job_name(self, name: str) -> str:
        if not self._backend.is_vertex:
            return name if name.startswith("tunedModels/") else f"tunedModels/{name}"
        if name.startswith("projects/"):
            return name
        if name.startswith("tuningJobs/"):
            return f"{self._backend.vertex_parent()}/{name}"
        return f"{self._backend.vertex_parent()}/tuningJobs/{name}"

    def _model_name(self, model: str) -> str:
        if not self._backend.is_vertex:
            if model.startswith(("models/", "tunedModels/")):
                return model
            return f"models/{model}"
        if model.startswith(("projects/", "publishers/")):
            return model
        return f"publishers/google/models/{model}"

    def _parse_job(self, data: dict[str, Any]) -> TuningJob:
        if self._backend.is_vertex:
            return from_wire(TuningJob, data)
        return _parse_tuned_model(data)

    # -------------------------------------------------------------------------
    # Request bodies
    # -------------------------------------------------------------------------

    def _gemini_body(
        self,
        base_model: str,
        dataset: TuningDataset,
        config: CreateTuningJobConfig,
    ) -> dict[str, Any]:
        for key in _GEMINI_UNSUPPORTED:
            if getattr(config, key) is not None:
                raise ConfigurationError(f"{key} is not supported in Gemini API", config_key=key)
        if dataset.gcs_uri is not None:
            raise ConfigurationError("gcs_uri is not supported in Gemini API", config_key="gcs_uri")
        if dataset.vertex_dataset_resource is not None:
            raise ConfigurationError(
                "vertex_dataset_resource is not supported in Gemini API",
                config_key="vertex_dataset_resource",
            )

        body: dict[str, Any] = {"baseModel": self._model_name(base_model)}
        if config.tuned_model_display_name is not None:
            body["displayName"] = config.tuned_model_display_name

        task: dict[str, Any] = {}
        if dataset.examples is not None:
            task["trainingData"] = {"examples": {"examples": to_wire(dataset.examples)}}
        hyperparameters = {
            key: value
            for key, value in (
                ("epochCount", config.epoch_count),
                ("batchSize", config.batch_size),
                ("learningRate", config.learning_rate),
                ("learningRateMultiplier", config.learning_rate_multiplier),
            )
            if value is not None
        }
        if hyperparameters:
            task["hyperparameters"] = hyperparameters
        if task:
            body["tuningTask"] = task
        return body

    def _vertex_body(
        self,
        base_model: str,
        dataset: TuningDataset,
        config: CreateTuningJobConfig,
    ) -> dict[str, Any]:
        for key in ("batch_size", "learning_rate"):
            if getattr(config, key) is not None:
                raise ConfigurationError(f"{key} is not supported in Vertex AI", config_key=key)
        if dataset.examples is not None:
            raise ConfigurationError("examples is not supported in Vertex AI", config_key="examples")

        method = config.method or TuningMethod.SUPERVISED_FINE_TUNING
        preference = method == TuningMethod.PREFERENCE_TUNING
        body: dict[str, Any] = {}
        spec: dict[str, Any] = {}

        if base_model.startswith("projects/"):
            pre_tuned: dict[str, Any] = {"tunedModelName": base_model}
            if config.pre_tuned_model_checkpoint_id is not None:
                pre_tuned["checkpointId"] = config.pre_tuned_model_checkpoint_id
            body["preTunedModel"] = pre_tuned
        else:
            body["baseModel"] = self._model_name(base_model)

        training_uri = dataset.gcs_uri or dataset.vertex_dataset_resource
        if training_uri:
            spec["trainingDatasetUri"] = training_uri
        validation = config.validation_dataset
        if validation is not None:
            validation_uri = validation.gcs_uri or validation.vertex_dataset_resource
            if validation_uri:
                spec["validationDatasetUri"] = validation_uri

        hyper: dict[str, Any] = {}
        if config.epoch_count is not None:
            hyper["epochCount"] = config.epoch_count
        if config.learning_rate_multiplier is not None:
            hyper["learningRateMultiplier"] = config.learning_rate_multiplier
        if config.adapter_size is not None:
            hyper["adapterSize"] = config.adapter_size
        if config.beta is not None:
            if preference:
                hyper["beta"] = config.beta
            else:
                body["preferenceOptimizationSpec"] = {"hyperParameters": {"beta": config.beta}}
        if hyper:
            spec["hyperParameters"] = hyper

        if config.export_last_checkpoint_only is not None:
            spec["exportLastCheckpointOnly"] = config.export_last_checkpoint_only
        if config.evaluation_config is not None:
            spec["evaluationConfig"] = config.evaluation_config
        if spec:
            spec_key = "preferenceOptimizationSpec" if preference else "supervisedTuningSpec"
            body[spec_key] = spec

        if config.tuned_model_display_name is not None:
            body["tunedModelDisplayName"] = config.tuned_model_display_name
        if config.description is not None:
            body["description"] = config.description
        if config.labels is not None:
            body["labels"] = dict(config.labels)
        return body

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def tune(
        self,
        base_model: str,
        training_dataset: TuningDataset,
        config: CreateTuningJobConfig | None = None,
    ) -> TuningJob:
        """
        Start a tuning job.

        Args:
            base_model: Model to tune. On Vertex AI a ``projects/...`` name
                continues tuning an already tuned model.
            training_dataset: Inline examples on the Gemini API, a dataset
                URI on Vertex AI.
            config: Hyperparameters and job metadata.

        Returns:
            The created job. On the Gemini API only its name and state are
            known until it is fetched again.

        Raises:
            ConfigurationError: If a field is not supported by the backend.
        """
        config = config or CreateTuningJobConfig()
        if self._backend.is_vertex:
            body = self._vertex_body(base_model, training_dataset, config)
        else:
            body = self._gemini_body(base_model, training_dataset, config)

        data, response = await self._backend.request_json(
            "POST",
            self._backend.url(self._collection(), config.http_options),
            json=body,
            http_options=config.http_options,
        )

        metadata = data.get("metadata")
        if not self._backend.is_vertex and isinstance(metadata, dict):
            # Gemini answers with a long-running operation
            job = TuningJob(
                name=metadata.get("tunedModel"),
                state=JobState.JOB_STATE_QUEUED,
            )
        else:
            job = self._parse_job(data)
        job.sdk_http_response = http_response(response)
        logger.info(f"Started tuning job {job.name} from {base_model}")
        return job

    async def get(self, name: str, http_options: HttpOptions | None = None) -> TuningJob:
        data, response = await self._backend.request_json(
            "GET",
            self._backend.url(self._job_name(name), http_options),
            http_options=http_options,
        )
        job = self._parse_job(data)
        job.sdk_http_response = http_response(response)
        return job

    async def list(self, config: ListTuningJobsConfig | None = None) -> ListTuningJobsResponse:
        http_options = config.http_options if config else None
        data, response = await self._backend.request_json(
            "GET",
            self._backend.url(self._collection(), http_options),
            params=list_params(config),
            http_options=http_options,
        )
        key = "tuningJobs" if self._backend.is_vertex else "tunedModels"
        return ListTuningJobsResponse(
            sdk_http_response=http_response(response),
            next_page_token=data.get("nextPageToken"),
            tuning_jobs=[self._parse_job(item) for item in data.get(key) or []],
        )

    async def all(self, config: ListTuningJobsConfig | None = None) -> AsyncIterator[TuningJob]:
        """Iterate over tuning jobs across every page."""
        async for job in iter_pages(self.list, config or ListTuningJobsConfig(), "tuning_jobs"):
            yield job

    async def cancel(self, name: str, http_options: HttpOptions | None = None) -> None:
        await self._backend.request(
            "POST",
            self._backend.url(f"{self._job_name(name)}:cancel", http_options),
            json={},
            http_options=http_options,
        )
