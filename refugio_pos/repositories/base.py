# ==============================================================================
# REPOSITORIO BASE - Archivos JSON de colecciones
# ==============================================================================
# Cada colección del almacén de documentos se guarda en un archivo JSON:
#   data/insumos.json -> {"<doc_id>": {...campos...}, ...}
# ==============================================================================

import json
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict


class StoreError(Exception):
    """
    Error de transporte o permisos del almacén.

    Se lanza cuando un archivo de colección no se puede leer o escribir,
    o cuando su contenido no es JSON válido. Las vistas pasan a estado de
    error en lugar de mostrar datos viejos.
    """


class BaseRepository(ABC):
    """
    Clase base abstracta para archivos JSON.
    Proporciona lectura/escritura con escritura atómica (archivo temporal
    + os.replace) y un lock global reentrante compartido por todos los
    archivos, de modo que una operación atómica que toca varias colecciones
    pueda retener el lock durante toda la operación.
    """

    # Lock global para evitar escrituras concurrentes a archivos
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        """
        Inicializa el repositorio con la ruta al archivo JSON.

        Args:
            file_path: Ruta absoluta al archivo JSON de datos
        """
        self.file_path = file_path
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        """Crea el directorio y el archivo con datos vacíos si no existen."""
        with self._file_lock:
            if os.path.exists(self.file_path):
                return
            directory = os.path.dirname(self.file_path)
            try:
                if directory:
                    os.makedirs(directory, exist_ok=True)
            except OSError as e:
                raise StoreError(f"No se pudo crear {directory}: {e}") from e
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """
        Retorna la estructura de datos vacía para este archivo.

        Returns:
            Estructura vacía (dict, list, etc.)
        """
        pass

    def _read_raw(self) -> Any:
        """
        Lee los datos crudos del archivo JSON.

        Returns:
            Datos parseados del JSON (vacío si el archivo no existe)

        Raises:
            StoreError: Si el archivo tiene JSON inválido o no se puede leer
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except FileNotFoundError:
                return self._empty_data()
            except json.JSONDecodeError as e:
                raise StoreError(f"Archivo corrupto {os.path.basename(self.file_path)}: {e}") from e
            except OSError as e:
                raise StoreError(f"No se pudo leer {os.path.basename(self.file_path)}: {e}") from e

    def _write_raw(self, data: Any) -> None:
        """
        Escribe datos al archivo JSON.

        Args:
            data: Datos a serializar y escribir

        Raises:
            StoreError: Si hay error de escritura
        """
        with self._file_lock:
            # Escribir a archivo temporal primero para atomicidad
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except (OSError, TypeError, ValueError) as e:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise StoreError(f"No se pudo escribir {os.path.basename(self.file_path)}: {e}") from e


class CollectionFile(BaseRepository):
    """
    Archivo de una colección de documentos.
    El ID del documento es la clave del diccionario.

    Ejemplo: data/kits.json -> {"a1b2...": {"nombre": "COMBO", ...}}
    """

    def __init__(self, data_dir: str, collection: str):
        """
        Args:
            data_dir: Directorio donde viven los archivos de colecciones
            collection: Nombre de la colección (también nombre del archivo)
        """
        self.collection = collection
        super().__init__(os.path.join(data_dir, f'{collection}.json'))

    def _empty_data(self) -> Dict:
        return {}

    def read_all(self) -> Dict[str, Dict[str, Any]]:
        """
        Lee todos los documentos de la colección.

        Returns:
            Diccionario {doc_id: campos}
        """
        data = self._read_raw()
        if not isinstance(data, dict):
            raise StoreError(f"Formato inválido en la colección {self.collection}")
        return data

    def write_all(self, data: Dict[str, Dict[str, Any]]) -> None:
        """Reemplaza el contenido completo de la colección."""
        self._write_raw(data)
