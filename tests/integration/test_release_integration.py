"""
Integration tests for a complete native release.

This test suite builds a tiny two-unit program that links OpenSSL with the
host's real toolchain, then packages it through the `lvbuild` command.
Run with: pytest --full
"""

import subprocess
import sys
import tarfile
import zipfile

import pytest

from lvbuild.config import ReleaseConfig
from lvbuild.packages import PlatformDetector

MAIN_CPP = """\
#include <cstring>
#include <iostream>

const char* tls_version();

int main(int argc, char** argv) {
    if (argc > 1 && std::strcmp(argv[1], "--version") == 0) {
        std::cout << "Levython 1.0.2 (" << tls_version() << ")" << std::endl;
        return 0;
    }
    return 0;
}
"""

HTTP_CLIENT_CPP = """\
#include <openssl/ssl.h>
#include <openssl/opensslv.h>

const char* tls_version() {
    OPENSSL_init_ssl(0, nullptr);
    return OPENSSL_VERSION_TEXT;
}
"""


@pytest.mark.integration
class TestNativeRelease:
    """Integration tests for a release built on the host"""

    @pytest.fixture
    def project(self, tmp_path):
        """Create a minimal runtime source tree"""
        src = tmp_path / "src"
        src.mkdir()
        (src / "levython.cpp").write_text(MAIN_CPP)
        (src / "http_client.cpp").write_text(HTTP_CLIENT_CPP)
        (tmp_path / "README.md").write_text("# Levython\n")
        (tmp_path / "install.sh").write_text("#!/bin/sh\n")
        windows = tmp_path / "windows"
        windows.mkdir()
        (windows / "install.bat").write_text("@echo off\n")
        (windows / "install.ps1").write_text("Write-Host install\n")
        return tmp_path

    def test_release_host_architecture(self, project):
        """
        Validates:
        - The CLI exits 0
        - The archive contains the executable and companion files
        - The released executable answers --version
        """
        result = subprocess.run(
            [sys.executable, "-m", "lvbuild.cli", "release", str(project), "--smoke-test"],
            capture_output=True,
            text=True,
            timeout=600,
        )
        assert result.returncode == 0, result.stdout + result.stderr

        host = PlatformDetector.detect_platform()
        arch = PlatformDetector.detect_architecture()
        config = ReleaseConfig.load(project)
        archive = config.archive_path(host, arch)
        assert archive.exists()

        if archive.suffix == ".zip":
            with zipfile.ZipFile(archive) as zf:
                names = set(zf.namelist())
        else:
            with tarfile.open(archive, "r:gz") as tf:
                names = set(tf.getnames())
        assert config.executable_name(host) in names
        assert "README.md" in names

        version = subprocess.run(
            [str(config.release_executable(host, arch)), "--version"],
            capture_output=True,
            text=True,
            timeout=30,
        )
        assert version.returncode == 0
        assert "Levython 1.0.2" in version.stdout
