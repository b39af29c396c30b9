"""Fetching helm charts with the helm command line tool."""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence

import yaml

from vendsync.move import move_dir
from vendsync.refs import ConfigMap, Secret, SingleSecretRefFetcher, TempArea

USERNAME_KEY = "username"
PASSWORD_KEY = "password"

_INIT_ARGS = ("init", "--client-only", "--stable-repo-url", "https://charts.helm.sh/stable")
_STABLE_PREFIX = "stable/"
_STABLE_REPO_URL = "https://kubernetes-charts.storage.googleapis.com"
_OCI_PREFIX = "oci://"


class HelmError(RuntimeError):
    """Raised when a helm command fails or a chart cannot be fetched."""


class _RefFetcher(Protocol):
    def get_secret(self, name: str) -> Secret: ...

    def get_config_map(self, name: str) -> ConfigMap: ...


class _CommandFailed(Exception):
    def __init__(self, reason: str, stderr: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.stderr = stderr


@dataclass(frozen=True)
class HelmChartRepository:
    """Where a chart lives; secret_ref names a secret with basic auth."""

    url: str = ""
    secret_ref: str | None = None


@dataclass(frozen=True)
class HelmChartContents:
    """Which chart to fetch, from where, and with which helm major version."""

    name: str = ""
    version: str = ""
    repository: HelmChartRepository | None = None
    helm_version: str = ""


@dataclass(frozen=True)
class ChartMeta:
    """Versions recorded in a chart's Chart.yaml."""

    app_version: str = ""
    version: str = ""


def helm_env(helm_home_dir: str) -> dict[str, str]:
    """The current environment with helm's home, cache and config dirs redirected."""
    env = dict(os.environ)
    env.update(
        {
            "HELM_HOME": helm_home_dir,
            "TEMP": helm_home_dir,
            "HELM_CACHE_HOME": helm_home_dir,
            "HELM_CONFIG_HOME": helm_home_dir,
            "HELM_DATA_HOME": helm_home_dir,
        }
    )
    return env


def default_helm_binary(opts: HelmChartContents) -> str:
    """'helm3' when helm version 3 is requested, otherwise 'helm'."""
    binary = "helm"
    if opts.helm_version == "3":
        binary = "helm3"
    return binary


def _run_helm(binary: str, args: Sequence[str], helm_home_dir: str) -> str:
    try:
        result = subprocess.run(
            [binary, *args],
            env=helm_env(helm_home_dir),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as err:
        raise _CommandFailed(str(err), "") from err
    if result.returncode != 0:
        raise _CommandFailed(f"exit status {result.returncode}", result.stderr)
    return result.stdout


class HelmHTTPSource:
    """Fetches a chart from a plain HTTP chart repository."""

    def __init__(self, opts: HelmChartContents, helm_binary: str, ref_fetcher: _RefFetcher) -> None:
        self.opts = opts
        self.helm_binary = helm_binary
        self.ref_fetcher = ref_fetcher

    def fetch(self, dst_path: str, temp_area: TempArea) -> None:
        """Download and untar the chart into dst_path."""
        helm_home_dir = temp_area.new_temp_dir("helm-home")
        try:
            self._init(helm_home_dir)
            self._fetch(helm_home_dir, dst_path)
        finally:
            shutil.rmtree(helm_home_dir, ignore_errors=True)

    def _init(self, helm_home_dir: str) -> None:
        try:
            _run_helm(self.helm_binary, _INIT_ARGS, helm_home_dir)
        except _CommandFailed as err:
            # Helm 3 has no init command and does not need one.
            if "unknown command" in err.stderr:
                return
            raise HelmError(f"Init helm: {err.reason} (stderr: {err.stderr})") from None

    def _name_and_repo_url(self) -> tuple[str, str]:
        name, repo_url = self.opts.name, ""
        if name.startswith(_STABLE_PREFIX):
            name = name.removeprefix(_STABLE_PREFIX)
            repo_url = _STABLE_REPO_URL

        if self.opts.repository is not None:
            if not self.opts.repository.url:
                raise ValueError("Expected non-empty repository URL")
            repo_url = self.opts.repository.url
        return name, repo_url

    def _with_auth(self, args: list[str]) -> list[str]:
        try:
            return self.auth_args(args)
        except (ValueError, LookupError) as err:
            raise HelmError(f"Adding helm chart auth info: {err}") from err

    def fetch_args(self, charts_path: str) -> list[str]:
        """Arguments of the 'helm fetch' call that untars into charts_path."""
        name, repo_url = self._name_and_repo_url()
        args = ["fetch", name, "--untar", "--untardir", charts_path]
        if self.opts.version:
            args += ["--version", self.opts.version]
        if repo_url:
            args += ["--repo", repo_url]
            args = self._with_auth(args)
        return args

    def _fetch(self, helm_home_dir: str, charts_path: str) -> None:
        _, repo_url = self._name_and_repo_url()

        if repo_url:
            # The repo is added explicitly so that fetch recognises it.
            add_args = self._with_auth(["repo", "add", "vendir-unused", repo_url])
            try:
                _run_helm(self.helm_binary, add_args, helm_home_dir)
            except _CommandFailed as err:
                raise HelmError(
                    f"Add helm chart repository: {err.reason} (stderr: {err.stderr})"
                ) from None

        fetch_args = self.fetch_args(charts_path)
        try:
            _run_helm(self.helm_binary, fetch_args, helm_home_dir)
        except _CommandFailed as err:
            raise HelmError(f"Fetching helm chart: {err.reason} (stderr: {err.stderr})") from None

    def auth_args(self, args: Sequence[str]) -> list[str]:
        """args followed by --username/--password taken from the repository secret."""
        auth: list[str] = []
        repository = self.opts.repository
        if repository is not None and repository.secret_ref is not None:
            secret = self.ref_fetcher.get_secret(repository.secret_ref)
            for name, value in secret.data.items():
                if name == USERNAME_KEY:
                    auth += ["--username", value.decode()]
                elif name == PASSWORD_KEY:
                    auth += ["--password", value.decode()]
                else:
                    raise ValueError(f"Unknown secret field '{name}' in secret '{secret.name}'")
        return [*args, *auth]


def find_chart_dir(charts_path: str) -> str:
    """Path of the single chart directory that helm untarred into charts_path."""
    names = sorted(
        entry.name
        for entry in os.scandir(charts_path)
        if entry.is_dir() and not entry.name.endswith(".tgz")
    )
    if len(names) != 1:
        raise ValueError(
            "Expected single directory in charts directory, but was: [" + " ".join(names) + "]"
        )
    return os.path.join(charts_path, names[0])


def retrieve_chart_meta(chart_path: str) -> ChartMeta:
    """Read version and appVersion from the chart's Chart.yaml."""
    try:
        with open(os.path.join(chart_path, "Chart.yaml"), "rb") as fh:
            raw = fh.read()
    except OSError as err:
        raise OSError(f"Reading Chart.yaml: {err}") from err

    try:
        doc = yaml.safe_load(raw)
    except yaml.YAMLError as err:
        raise ValueError(str(err)) from err

    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        raise ValueError("Expected Chart.yaml to hold a mapping")

    fields = {"appversion": "", "version": ""}
    for key, value in doc.items():
        lowered = str(key).lower()
        if lowered in fields and value is not None:
            if not isinstance(value, str):
                raise ValueError(f"Expected '{key}' in Chart.yaml to be a string")
            fields[lowered] = value

    meta = ChartMeta(app_version=fields["appversion"], version=fields["version"])
    if not meta.version:
        raise ValueError("Expected non-empty chart version")
    return meta


class HelmChartSync:
    """Fetches a helm chart and moves it into a destination directory."""

    def __init__(
        self,
        opts: HelmChartContents,
        helm_binary: str = "",
        ref_fetcher: _RefFetcher | None = None,
    ) -> None:
        self.opts = opts
        self.helm_binary = helm_binary or default_helm_binary(opts)
        self.ref_fetcher = ref_fetcher if ref_fetcher is not None else SingleSecretRefFetcher()

    def desc(self) -> str:
        """Short description such as 'repo-url@name:version'."""
        desc = ""
        if self.opts.repository is not None and self.opts.repository.url:
            desc += self.opts.repository.url + "@"
        desc += self.opts.name + ":"
        desc += self.opts.version or "latest"
        return desc

    def sync(self, dst_path: str, temp_area: TempArea) -> ChartMeta:
        """Replace dst_path with the fetched chart and return its versions."""
        if not self.opts.name:
            raise ValueError("Expected non-empty name")

        charts_dir = temp_area.new_temp_dir("helm-chart")
        try:
            repository = self.opts.repository
            if repository is not None and repository.url.startswith(_OCI_PREFIX):
                raise HelmError(f"Fetching charts from OCI repositories is not supported: {repository.url}")
            HelmHTTPSource(self.opts, self.helm_binary, self.ref_fetcher).fetch(charts_dir, temp_area)

            try:
                chart_path = find_chart_dir(charts_dir)
            except (OSError, ValueError) as err:
                raise HelmError(f"Finding single helm chart: {err}") from err

            try:
                meta = retrieve_chart_meta(chart_path)
            except (OSError, ValueError) as err:
                raise HelmError(f"Retrieving helm chart metadata: {err}") from err

            move_dir(chart_path, dst_path)
            return meta
        finally:
            shutil.rmtree(charts_dir, ignore_errors=True)