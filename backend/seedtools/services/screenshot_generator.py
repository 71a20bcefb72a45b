"""
ScreenshotGenerator Service for seed-tools

This module provides screenshots, thumbnails and sample clips for video releases
using FFmpeg. Screenshots are captured at random timestamps drawn between 15% and
85% of the video duration, so intros and credits are skipped.

Features:
    - Video duration detection via ffprobe
    - 4 screenshots per release by default, each with a 720px wide thumbnail
    - 20 second stream-copied sample clip starting at 00:05:00
    - A failing screenshot is logged and omitted; the others are kept

The FrameExtractor interface isolates the ffmpeg/ffprobe calls so tests can drive
ScreenshotGenerator with a fake.

Usage Example:
    generator = ScreenshotGenerator(FFmpegFrameExtractor(), "./screenshots")
    shots = generator.capture("/media/Movie.mkv", "Movie.2019.1080p")
    # [("./screenshots/Movie.2019.1080p_1.jpg", "./screenshots/Movie.2019.1080p_1_thumb.jpg"), ...]
"""

import logging
import os
import random
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple

from seedtools.services.exceptions import ScreenshotError
from seedtools.utils.process import run_tool

logger = logging.getLogger(__name__)


SCREENSHOT_COUNT = 4
WINDOW_START = 0.15
WINDOW_END = 0.85
SAMPLE_START = "00:05:00"
SAMPLE_LENGTH = "00:00:20"
THUMBNAIL_WIDTH = 720


class FrameExtractor(ABC):
    """Frame and clip extraction from a video file."""

    @abstractmethod
    def duration(self, video_path: str) -> float:
        """Duration in seconds."""

    @abstractmethod
    def screenshot(self, video_path: str, timestamp: int, output_file: str) -> None:
        pass

    @abstractmethod
    def thumbnail(self, image_path: str, output_file: str) -> None:
        pass

    @abstractmethod
    def sample(self, video_path: str, output_file: str) -> None:
        pass


class FFmpegFrameExtractor(FrameExtractor):
    """
    FrameExtractor backed by the ffmpeg and ffprobe binaries.

    Args:
        ffmpeg_path: ffmpeg executable (name on PATH or absolute path)
        ffprobe_path: ffprobe executable
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path

    def duration(self, video_path: str) -> float:
        """
        Get video duration in seconds using ffprobe.

        Raises:
            ScreenshotError: If duration cannot be determined
        """
        cmd = [
            self.ffprobe_path,
            '-v', 'error',
            '-show_entries', 'format=duration',
            '-of', 'default=noprint_wrappers=1:nokey=1',
            video_path,
        ]
        result = run_tool(cmd, ScreenshotError, "ffprobe could not read duration")

        try:
            duration = float(result.stdout.strip())
        except ValueError as e:
            raise ScreenshotError(f"Could not parse duration: {result.stdout.strip()!r}", tool="ffprobe") from e

        logger.info(f"Video duration: {duration:.2f}s ({duration / 60:.1f}m)")
        return duration

    def screenshot(self, video_path: str, timestamp: int, output_file: str) -> None:
        cmd = [
            self.ffmpeg_path,
            '-y', '-loglevel', 'error',
            '-ss', str(timestamp),
            '-i', video_path,
            '-vframes', '1',
            '-qscale:v', '2',
            output_file,
        ]
        run_tool(cmd, ScreenshotError, f"ffmpeg capture at {timestamp}s failed")
        if not Path(output_file).exists():
            raise ScreenshotError(f"Screenshot file not created: {output_file}", tool="ffmpeg")

    def thumbnail(self, image_path: str, output_file: str) -> None:
        cmd = [
            self.ffmpeg_path,
            '-y', '-loglevel', 'error',
            '-i', image_path,
            '-vf', f'scale={THUMBNAIL_WIDTH}:-1',
            output_file,
        ]
        run_tool(cmd, ScreenshotError, "ffmpeg thumbnail failed")

    def sample(self, video_path: str, output_file: str) -> None:
        cmd = [
            self.ffmpeg_path,
            '-y',
            '-i', video_path,
            '-ss', SAMPLE_START,
            '-t', SAMPLE_LENGTH,
            '-map', '0',
            '-c', 'copy',
            output_file,
        ]
        run_tool(cmd, ScreenshotError, "ffmpeg sample clip failed")


def random_timestamps(
    duration: float,
    count: int = SCREENSHOT_COUNT,
    rng: Optional[random.Random] = None,
) -> List[int]:
    """
    count whole-second timestamps drawn uniformly from [15%, 85%) of duration, sorted.

    A video too short for the window yields its 15% mark for every shot.
    """
    rng = rng or random.Random()
    start = int(duration * WINDOW_START)
    end = int(duration * WINDOW_END)
    if end <= start:
        return [start] * count
    return sorted(rng.randrange(start, end) for _ in range(count))


class ScreenshotGenerator:
    """
    Produces the screenshot/thumbnail pairs and sample clip for one release.

    Files are named after the normalized release name:
        <release>_<n>.jpg, <release>_<n>_thumb.jpg, <release>.sample.mkv
    """

    def __init__(
        self,
        extractor: FrameExtractor,
        output_dir: str,
        count: int = SCREENSHOT_COUNT,
        rng: Optional[random.Random] = None,
    ):
        self.extractor = extractor
        self.output_dir = output_dir
        self.count = count
        self.rng = rng

    def capture(self, video_path: str, release_name: str) -> List[Tuple[str, str]]:
        """
        Capture screenshots and thumbnails.

        Returns:
            (screenshot path, thumbnail path) for every shot that succeeded

        Raises:
            ScreenshotError: If the duration cannot be read
        """
        os.makedirs(self.output_dir, exist_ok=True)
        duration = self.extractor.duration(video_path)
        timestamps = random_timestamps(duration, self.count, self.rng)

        logger.info(
            f"Generating {len(timestamps)} screenshots at {', '.join(f'{t}s' for t in timestamps)}"
        )

        pairs = []
        for i, timestamp in enumerate(timestamps, 1):
            shot = os.path.join(self.output_dir, f"{release_name}_{i}.jpg")
            thumb = os.path.join(self.output_dir, f"{release_name}_{i}_thumb.jpg")
            try:
                self.extractor.screenshot(video_path, timestamp, shot)
                self.extractor.thumbnail(shot, thumb)
            except ScreenshotError as e:
                logger.error(f"Failed to capture screenshot {i} at {timestamp}s: {e}")
                continue
            pairs.append((shot, thumb))

        logger.info(f"Generated {len(pairs)}/{len(timestamps)} screenshots")
        return pairs

    def make_sample(self, video_path: str, release_name: str) -> str:
        """Cut the sample clip; raises ScreenshotError on failure."""
        os.makedirs(self.output_dir, exist_ok=True)
        sample_file = os.path.join(self.output_dir, f"{release_name}.sample.mkv")
        self.extractor.sample(video_path, sample_file)
        logger.info(f"Generated sample clip: {os.path.basename(sample_file)}")
        return sample_file
