import asyncio
import os
import sys
from pathlib import Path

from agnost import FileUploadOptions, create_client


async def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python upload_file.py <file> [storage] [bucket]")
        return

    path = Path(sys.argv[1])
    storage_name = sys.argv[2] if len(sys.argv) > 2 else "default"
    bucket_name = sys.argv[3] if len(sys.argv) > 3 else "uploads"

    async with create_client(os.getenv("AGNOST_BASE_URL"), os.getenv("AGNOST_API_KEY")) as client:
        print(f"Uploading {path.name} to {storage_name}/{bucket_name}...")
        result = await client.storage(storage_name).bucket(bucket_name).upload(
            path.name,
            path,
            FileUploadOptions(create_bucket=True, upsert=True),
        )

    if result.errors is not None:
        for item in result.errors.items:
            print(f"Upload failed [{item.code}]: {item.message}")
        return

    print(f"Uploaded: {result.data}")


if __name__ == "__main__":
    asyncio.run(main())
