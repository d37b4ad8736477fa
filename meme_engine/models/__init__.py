from meme_engine.models.job import Asset, AssetKind, Job, JobStatus, JobVariant

__all__ = ["Asset", "AssetKind", "Job", "JobStatus", "JobVariant"]
