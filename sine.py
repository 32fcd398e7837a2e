import argparse
import logging

import numpy as np

from wavenc.audio.wavwriter import DEFAULT_SAMPLE_RATE, WavFile

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CHUNK_FRAMES = 4096  # frames generated per write_frames() call


def get_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Write a sine tone to a PCM WAV file.")
    ap.add_argument("--output", default="output.wav", help="Path of the WAV file to write.")
    ap.add_argument("--freq", type=float, default=440.0, help="Tone frequency in Hz.")
    ap.add_argument("--seconds", type=float, default=5.0, help="Duration of the tone.")
    ap.add_argument("--amplitude", type=float, default=0.5, help="Peak amplitude, 0..1.")
    ap.add_argument("--sample-rate", type=int, default=DEFAULT_SAMPLE_RATE, help="Samples per second.")
    ap.add_argument("--bits", type=int, choices=(16, 24), default=16, help="Bit depth.")
    ap.add_argument("--channels", type=int, choices=(1, 2), default=1, help="1 = mono, 2 = stereo.")
    return ap


def sine_chunks(freq: float, sample_rate: int, n_frames: int, amplitude: float):
    """Yield the tone as float64 arrays of at most CHUNK_FRAMES samples."""
    step = 2 * np.pi * (freq / sample_rate)
    for start in range(0, n_frames, CHUNK_FRAMES):
        i = np.arange(start, min(start + CHUNK_FRAMES, n_frames))
        yield np.sin(step * i) * amplitude


def main(argv=None) -> int:
    args = get_parser().parse_args(argv)
    n_frames = int(args.sample_rate * args.seconds)

    with WavFile(args.output, args.bits, args.channels, args.sample_rate) as wav:
        if not wav:
            logger.error(f"Cannot write to {args.output}")
            return 1
        for chunk in sine_chunks(args.freq, args.sample_rate, n_frames, args.amplitude):
            if args.channels == 2:
                chunk = np.column_stack((chunk, chunk))
            wav.write_frames(chunk)

    logger.info(f"Wrote {n_frames} frames of {args.freq} Hz to {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
