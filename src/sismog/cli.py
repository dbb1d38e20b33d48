from __future__ import annotations

import getpass
import stat
import sys
from importlib.resources import files
from pathlib import Path

USAGE = """Uso:
  sismog                 abre o painel (TUI)
  sismog init            cria a configuração inicial
  sismog gerar AAAA-MM   gera os faturamentos da competência
"""


def _check_keyring_available() -> bool:
    """Check if keyring is installed with a usable backend."""
    try:
        import keyring
        from keyring.backends.fail import Keyring as FailKeyring

        return not isinstance(keyring.get_keyring(), FailKeyring)
    except Exception:
        return False


def _upsert_env_var(env_file: Path, key: str, value: str) -> None:
    """Set or update a key=value pair in a .env file, creating it if needed."""
    from dotenv import set_key

    env_file.parent.mkdir(parents=True, exist_ok=True)
    if not env_file.exists():
        env_file.touch()
    set_key(str(env_file), key, value)


def _remove_env_var(env_file: Path, key: str) -> None:
    from dotenv import unset_key

    if env_file.exists():
        unset_key(str(env_file), key)


def _warn_open_permissions(env_file: Path) -> None:
    """Warn if .env file has group/other read permissions (Unix only)."""
    try:
        mode = env_file.stat().st_mode
        if mode & (stat.S_IRGRP | stat.S_IROTH):
            print(f"\n  AVISO: {env_file} tem permissões abertas.")
            print("  Recomendação: chmod 600", env_file)
    except OSError:
        pass


def _setup_remote_store(config_dir: Path) -> bool:
    """Interactive REST store setup. Returns True if the store was configured."""
    print()
    print("Configuração do armazenamento remoto (PostgREST/Supabase)")
    print("──────────────────────────────────────────────────────────")
    print()

    url = input("URL do projeto (vazio para usar o arquivo local): ").strip()
    if not url:
        print("  Armazenamento local mantido.")
        return False
    if not url.startswith(("http://", "https://")):
        print(f"  URL inválida: {url}")
        return False

    api_key = getpass.getpass("Chave de API: ").strip()
    if not api_key:
        print("  Chave vazia. Configuração abortada.")
        return False

    from sismog.config import load_settings, save_settings

    settings = load_settings()
    settings.setdefault("store", {})
    settings["store"]["backend"] = "rest"
    settings["store"]["url"] = url.rstrip("/")
    save_settings(settings)

    env_file = config_dir / ".env"

    print()
    print("Onde deseja armazenar a chave de API?")
    keyring_ok = _check_keyring_available()
    options: list[tuple[str, str]] = []
    if keyring_ok:
        options.append(("1", "Keychain do sistema (recomendado)"))
    options.append(("2", "Arquivo .env no diretório de configuração"))
    options.append(("3", "Não armazenar (definir SISMOG_API_KEY manualmente)"))
    for num, label in options:
        print(f"  {num}. {label}")
    if not keyring_ok:
        print()
        print("  Nota: keychain do sistema indisponível (sem backend configurado).")

    print()
    valid_choices = {num for num, _ in options}
    choice = ""
    while choice not in valid_choices:
        choice = input(f"Escolha [{'/'.join(sorted(valid_choices))}]: ").strip()

    from sismog.config import _delete_keyring_password

    if choice == "1" and keyring_ok:
        from sismog.config import _set_keyring_password

        if _set_keyring_password(api_key):
            print("  Chave armazenada no keychain do sistema.")
            _remove_env_var(env_file, "SISMOG_API_KEY")
        else:
            print("  ERRO: Falha ao armazenar no keychain. Salvando no .env como alternativa.")
            _upsert_env_var(env_file, "SISMOG_API_KEY", api_key)
            _warn_open_permissions(env_file)
    elif choice == "2":
        _upsert_env_var(env_file, "SISMOG_API_KEY", api_key)
        print(f"  Chave salva em {env_file}")
        _warn_open_permissions(env_file)
        _delete_keyring_password()
    else:
        _remove_env_var(env_file, "SISMOG_API_KEY")
        _delete_keyring_password()
        print("  Chave não armazenada.")
        print("  Defina SISMOG_API_KEY no seu shell ou .env antes de usar o sismog.")
    return True


def _init_config() -> None:
    """Copy the bundled settings template and optionally configure the remote store."""
    from sismog.config import get_config_dir, get_data_dir

    config_dir = get_config_dir()
    data_dir = get_data_dir()
    templates = files("sismog") / "templates"

    config_dir.mkdir(parents=True, exist_ok=True)
    data_dir.mkdir(parents=True, exist_ok=True)

    copied = 0
    dest = config_dir / "settings.yaml.example"
    if dest.exists():
        print(f"  já existe: {dest}")
    else:
        with (templates / "settings.yaml.example").open("rb") as f:
            dest.write_bytes(f.read())
        print(f"  criado: {dest}")
        copied += 1

    print()
    print(f"Configuração: {config_dir}")
    print(f"Dados:   {data_dir}")

    print()
    remote = False
    try:
        answer = input("Deseja usar um armazenamento remoto (REST)? [s/N]: ").strip().lower()
        if answer in ("s", "sim", "y", "yes"):
            remote = _setup_remote_store(config_dir)
    except (EOFError, KeyboardInterrupt):
        print()

    print()
    if remote:
        print("Armazenamento remoto configurado. Execute: sismog")
    elif copied:
        print("Próximos passos:")
        print(f"  1. cp {dest} {config_dir / 'settings.yaml'} (opcional)")
        print(f"  2. Execute: sismog (dados em {data_dir / 'store.json'})")
    else:
        print("Nenhum arquivo novo criado (todos já existiam).")


def _preflight() -> bool:
    """Verify the store configuration before launching.

    Auto-creates the data directory. The local backend needs nothing else;
    the REST backend needs a URL and an API key.
    """
    from sismog import config

    data_dir = config.get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)

    try:
        backend = config.get_store_backend()
    except ValueError as e:
        print(f"Erro: {e}")
        print("Valores aceitos em settings.yaml (store.backend): local, rest")
        return False

    if backend == "rest":
        try:
            config.get_store_url()
        except KeyError:
            print("Erro: URL do armazenamento remoto não configurada.")
            print("Defina SISMOG_STORE_URL ou execute 'sismog init'.")
            return False
        try:
            config.get_api_key()
        except KeyError:
            print("Erro: chave de API do armazenamento remoto não encontrada.")
            print("Defina SISMOG_API_KEY ou execute 'sismog init'.")
            return False
    return True


def _generate(competencia: str) -> int:
    """Headless billing generation. Returns the process exit code."""
    from sismog.services.billing import generate_billings
    from sismog.services.exceptions import NoActiveContractsError, SismogError
    from sismog.services.taxes import configured_rates
    from sismog.store import open_store
    from sismog.utils.formatters import format_competencia

    try:
        result = generate_billings(open_store(), competencia, rates=configured_rates())
    except NoActiveContractsError as e:
        print(e)
        return 0
    except (SismogError, ValueError) as e:
        print(f"Erro: {e}")
        return 1
    comp = format_competencia(result.competencia)
    if result.nothing_to_do:
        print(f"Nada a gerar para {comp}.")
    else:
        print(f"{result.created} faturamento(s) gerado(s) para {comp}.")
    if result.skipped_existing:
        print(f"  {result.skipped_existing} contrato(s) já faturado(s) na competência")
    if result.skipped_out_of_term:
        print(f"  {result.skipped_out_of_term} contrato(s) fora da vigência")
    return 0


def main() -> None:
    """Entry point for the SISMOG back-office CLI/TUI."""
    args = sys.argv[1:]
    if args and args[0] == "init":
        _init_config()
        return
    if args and args[0] in ("-h", "--help"):
        print(USAGE)
        return

    if not _preflight():
        sys.exit(1)

    if args and args[0] == "gerar":
        if len(args) < 2:
            print(USAGE)
            sys.exit(2)
        sys.exit(_generate(args[1]))

    from sismog.tui.app import SismogApp

    app = SismogApp()
    app.run()


if __name__ == "__main__":
    main()
