import wave

import numpy as np

import sine


def test_default_tone_is_16bit_mono(tmp_path):
    out = tmp_path / "tone.wav"
    assert sine.main(["--output", str(out), "--seconds", "0.1"]) == 0

    with wave.open(str(out), 'rb') as r:
        assert r.getnchannels() == 1
        assert r.getsampwidth() == 2
        assert r.getframerate() == 44100
        assert r.getnframes() == 4410
        samples = np.frombuffer(r.readframes(4410), dtype='<i2')
    # Half amplitude: peak is 0.5 * 0x7fff truncated
    assert samples.max() <= 16383
    assert samples.max() > 16000
    assert samples[0] == 0


def test_stereo_24bit_tone_spans_several_chunks(tmp_path):
    out = tmp_path / "tone24.wav"
    rc = sine.main(["--output", str(out), "--seconds", "0.25", "--sample-rate", "48000",
                    "--bits", "24", "--channels", "2"])
    assert rc == 0

    with wave.open(str(out), 'rb') as r:
        assert r.getnchannels() == 2
        assert r.getsampwidth() == 3
        assert r.getnframes() == 12000
        raw = r.readframes(12000)
    left = raw[0::6][:100]
    right = raw[3::6][:100]
    assert left == right


def test_unwritable_output_returns_error(tmp_path):
    assert sine.main(["--output", str(tmp_path / "no" / "such" / "dir.wav")]) == 1
