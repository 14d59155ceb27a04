import os
import pathlib
import shutil

import boto3

from typing import List
from typing import Optional

from buildtools.process import BatchReport
from buildutil.prof import Context

class Publisher:
    def __init__(self, bucket: str, aws_access_key_id: Optional[str] = None, aws_secret_access_key: Optional[str] = None, client = None):
        if not bucket:
            raise Exception("Publishing requires `s3_bucket` in the config")

        self.bucket = bucket
        if client is None:
            if aws_access_key_id is None or aws_secret_access_key is None:
                raise Exception("Missing AWS keys!")
            client = boto3.client('s3', aws_access_key_id = aws_access_key_id, aws_secret_access_key = aws_secret_access_key)
        self.s3 = client

    def archive(self, location) -> pathlib.Path:
        # a build is either a single file (apk) or a folder with the executable and its data beside it;
        # the folder the build was written into covers both
        builddir = pathlib.Path(location).parent
        if not builddir.is_dir():
            raise Exception(f"Build output {builddir} doesn't exist")
        return pathlib.Path(shutil.make_archive(str(builddir), "zip", root_dir = str(builddir)))

    def key(self, batch_id: str, name: str) -> str:
        return f"{batch_id}/{name}.zip"

    def publish(self, report: BatchReport) -> List[str]:
        keys = []
        for result in report.results:
            if not result.success:
                print(f"S3: skipping {result.name} (build failed)")
                continue

            with Context(f"publish {result.name}"):
                archive = self.archive(result.location)
                key = self.key(report.batch_id, result.name)
                print(f"S3: uploading {archive.name} to s3://{self.bucket}/{key}")
                try:
                    with open(archive, "rb") as f:
                        self.s3.upload_fileobj(f, self.bucket, key)
                finally:
                    os.remove(archive)
            keys.append(key)
        return keys
