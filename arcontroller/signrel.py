"""Download release assets, sign them with gpg and upload the signatures."""

from __future__ import annotations

import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

import requests

OWNER = "actions-runner-controller"
REPO = "actions-runner-controller"

API_URL = "https://api.github.com"
UPLOADS_URL = "https://uploads.github.com"

USAGE = "USAGE: signrel [list-tags|sign-assets]"


@dataclass(frozen=True)
class Release:
    id: int

    @classmethod
    def from_json(cls, data: dict) -> "Release":
        return cls(id=int(data.get("id", 0)))


@dataclass(frozen=True)
class Asset:
    name: str
    id: int
    url: str = ""

    @classmethod
    def from_json(cls, data: dict) -> "Asset":
        return cls(
            name=data.get("name", ""),
            id=int(data.get("id", 0)),
            url=data.get("url", ""),
        )


class ReleaseAssetClient:
    """Talks to the release API of one repository."""

    def __init__(
        self,
        owner: str = OWNER,
        repo: str = REPO,
        token: str | None = None,
        session: requests.Session | None = None,
        api_url: str = API_URL,
        uploads_url: str = UPLOADS_URL,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.token = os.environ.get("GITHUB_TOKEN", "") if token is None else token
        self.session = session or requests.Session()
        self.api_url = api_url.rstrip("/")
        self.uploads_url = uploads_url.rstrip("/")

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {}
        if self.token:
            headers["authorization"] = "token " + self.token
        headers.update(extra)
        return headers

    def _get_ok(self, url: str) -> requests.Response:
        response = self.session.get(url, headers=self._headers())
        if response.status_code != 200:
            raise RuntimeError(f"GET {url}: {response.status_code} {response.reason}")
        return response

    def download(self, tag: str, dst_dir) -> None:
        """Fetch every unsigned asset of ``tag``, sign it and upload its signature."""
        release = self.get_release_by_tag(self.owner, self.repo, tag)
        assets = self.get_assets_by_release_id(self.owner, self.repo, release.id)

        directory = Path(dst_dir) / tag
        directory.mkdir(parents=True, exist_ok=True)

        for asset in assets:
            if asset.name.endswith(".asc"):
                continue

            path = directory / asset.name
            print(f"Downloading {asset.name} to {path}", file=sys.stderr)
            self.get_file(path, self.owner, self.repo, asset.id)

            sig = Path(str(path) + ".asc")
            if not sig.exists():
                self.sign(path)

            print(f"Uploading {sig}")
            self.upload(sig, release.id)

    def get_recent_releases(self, owner: str, repo: str) -> None:
        """Print the raw JSON listing of the repository's releases."""
        url = f"{self.api_url}/repos/{owner}/{repo}/releases"
        response = self._get_ok(url)
        print(response.text)

    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> Release:
        url = f"{self.api_url}/repos/{owner}/{repo}/releases/tags/{tag}"
        return Release.from_json(self._get_ok(url).json())

    def get_assets_by_release_id(self, owner: str, repo: str, release_id: int) -> list[Asset]:
        url = f"{self.api_url}/repos/{owner}/{repo}/releases/{release_id}/assets"
        return [Asset.from_json(item) for item in self._get_ok(url).json() or []]

    def get_file(self, dst, owner: str, repo: str, asset_id: int) -> None:
        """Download the asset's content into ``dst``, creating parent directories."""
        dst = Path(dst)
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise OSError(f"mkdir {dst.parent}: {err}") from err

        url = f"{self.api_url}/repos/{owner}/{repo}/releases/assets/{asset_id}"
        response = self.session.get(
            url, headers=self._headers(accept="application/octet-stream"), stream=True
        )
        with response, dst.open("wb") as out:
            for chunk in response.iter_content(chunk_size=65536):
                out.write(chunk)

    def sign(self, path) -> str:
        """Write an armored detached signature next to ``path`` and return its path."""
        passphrase = os.environ.get("SIGNREL_PASSWORD", "")
        command = [
            "gpg", "--armor", "--detach-sign", "--pinentry-mode", "loopback",
            "--passphrase", passphrase, str(path),
        ]
        completed = subprocess.run(
            command, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=False
        )
        if completed.returncode != 0:
            output = completed.stdout.decode(errors="replace") if completed.stdout else ""
            print(f"gpg: {output}", end="", file=sys.stderr)
            raise subprocess.CalledProcessError(completed.returncode, command, completed.stdout)
        return str(path) + ".asc"

    def upload(self, sig, release_id: int) -> None:
        """Upload a signature file as an asset of the release."""
        sig = Path(sig)
        url = f"{self.uploads_url}/repos/{self.owner}/{self.repo}/releases/{release_id}/assets"
        data = sig.read_bytes()
        response = self.session.post(
            url,
            params={"name": sig.name},
            data=data,
            headers=self._headers(**{
                "content-type": "application/octet-stream",
                "accept": "application/vnd.github.v3+json",
                "content-length": str(len(data)),
            }),
        )
        body = response.text

        if response.status_code == 422:
            print(f"{sig} has been already uploaded")
            return

        if response.status_code >= 300:
            raise RuntimeError(f"unexpected http status {response.status_code}: {body}")

        print(f"Upload completed: {body}")


def main(argv=None) -> int:
    """Run the ``tags`` or ``sign`` command and return an exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    client = ReleaseAssetClient()

    if len(args) != 1:
        print(f"Invalid command: {args}", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return 2

    command = args[0]
    try:
        if command == "tags":
            client.get_recent_releases(OWNER, REPO)
        elif command == "sign":
            client.download(os.environ.get("TAG", ""), "downloads")
        else:
            print(f"Unknown command {command}", file=sys.stderr)
            return 2
    except (OSError, RuntimeError, ValueError, requests.RequestException,
            subprocess.CalledProcessError) as err:
        print(err, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())