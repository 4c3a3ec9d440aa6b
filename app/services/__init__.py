"""Services layer for ReelRelay.

Services implement the video acquisition and delivery pipeline:
- fetcher: Multi-source video download
- transcoder: Facebook-compatible re-encoding ladder
- uploader: Graph API publishing and orchestration
- janitor: Scratch directory housekeeping
"""
