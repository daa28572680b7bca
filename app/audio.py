from pathlib import Path
import subprocess

def write_normalized_wav(data: bytes, workdir: Path, stem: str = "upload") -> Path:
    """Write uploaded bytes to ``workdir`` and convert them to mono 16 kHz PCM."""
    workdir.mkdir(parents=True, exist_ok=True)
    src = workdir / stem
    src.write_bytes(data)
    dst = workdir / f"{stem}.wav"
    cmd = ["ffmpeg", "-y", "-i", str(src), "-ac", "1", "-ar", "16000", "-acodec", "pcm_s16le", str(dst)]
    subprocess.run(cmd, check=True, capture_output=True)
    return dst
