"""
Genera el par de claves RSA (RS256) con el que se firman los JWT.

Uso:
    python scripts/generate_keys.py [directorio] [--force]

Por defecto escribe en ./keys y no sobrescribe claves existentes.
"""

import sys
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


def write_key_pair(keys_dir: Path, force: bool = False) -> tuple[Path, Path]:
    keys_dir.mkdir(parents=True, exist_ok=True)
    private_path = keys_dir / "private.pem"
    public_path = keys_dir / "public.pem"

    if private_path.exists() and not force:
        raise FileExistsError(f"Ya existen claves en {keys_dir} (use --force para regenerarlas)")

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    public_path.write_bytes(
        private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return private_path, public_path


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    target = Path(args[0]) if args else Path(__file__).resolve().parent.parent / "keys"
    try:
        private_path, public_path = write_key_pair(target, force="--force" in sys.argv)
    except FileExistsError as exc:
        print(f"⚠️  {exc}")
        sys.exit(1)

    print(f"✅ Clave privada: {private_path}")
    print(f"✅ Clave pública: {public_path}")
    print("\n📌 Agrega las rutas a tu .env:")
    print(f"   JWT_PRIVATE_KEY_PATH={private_path}")
    print(f"   JWT_PUBLIC_KEY_PATH={public_path}")
