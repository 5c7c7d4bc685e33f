"""Synthesized vocal-like test signals."""

import io
import os

import numpy as np
import soundfile as sf

SR = 48000

# Directory for generated example takes
EXAMPLES_DIR = os.path.join(os.path.dirname(__file__), "..", "examples")


def generate_sine_wave(freq: float, duration: float, sr: int = SR, amplitude: float = 0.5) -> np.ndarray:
    """Generate a sine wave at given frequency."""
    t = np.arange(int(round(sr * duration))) / sr
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def generate_note_sequence(
    frequencies: list, durations: list, sr: int = SR, amplitude: float = 0.5
) -> np.ndarray:
    """Generate a sequence of notes; a frequency of 0 is a rest."""
    audio = []
    for freq, dur in zip(frequencies, durations):
        if freq <= 0:
            audio.append(np.zeros(int(round(sr * dur)), dtype=np.float32))
            continue
        note = generate_sine_wave(freq, dur, sr, amplitude)
        # Apply simple envelope to avoid clicks
        envelope = np.ones_like(note)
        ramp = int(0.005 * sr)
        envelope[:ramp] = np.linspace(0, 1, ramp)
        envelope[-ramp:] = np.linspace(1, 0, ramp)
        audio.append(note * envelope)
    return np.concatenate(audio).astype(np.float32)


def to_wav_bytes(audio: np.ndarray, sr: int = SR) -> bytes:
    """Encode a mono (frames,) or channel-first (channels, frames) array as WAV."""
    data = np.asarray(audio, dtype=np.float32)
    if data.ndim == 2:
        data = data.T
    out = io.BytesIO()
    sf.write(out, data, sr, format="WAV", subtype="FLOAT")
    return out.getvalue()


def save_wav(filename: str, audio: np.ndarray, sr: int = SR):
    """Save audio as 16-bit WAV file."""
    os.makedirs(EXAMPLES_DIR, exist_ok=True)
    filepath = os.path.join(EXAMPLES_DIR, filename)
    sf.write(filepath, audio, sr, subtype="PCM_16")
    print(f"Created: {filepath}")
    return filepath


def main():
    # 1. Sustained A3 (220 Hz) - 2 seconds
    print("Generating sustained_a3.wav...")
    save_wav("sustained_a3.wav", generate_sine_wave(220.0, 2.0))

    # 2. Sung phrase with a breath: A3, C4, rest, E4
    print("Generating phrase.wav...")
    phrase = generate_note_sequence([220.0, 261.63, 0.0, 329.63], [0.6, 0.6, 0.3, 0.8])
    save_wav("phrase.wav", phrase)

    # 3. Silence (for edge case testing)
    print("Generating silence.wav...")
    save_wav("silence.wav", np.zeros(SR * 2, dtype=np.float32))

    print("\nAll test audio files generated!")


if __name__ == "__main__":
    main()
