"""
In-process entity registry and scene used as chunk consumers
"""
from typing import Any, Dict, Iterator, List, Set


class World:
    """Entity/component registry keyed by integer entity ids"""

    def __init__(self):
        self.entities: Set[int] = set()
        self.components: Dict[str, Dict[int, Any]] = {}
        self.entity_components: Dict[int, Set[str]] = {}
        self.next_entity_id = 0

    def create_entity(self) -> int:
        """Create an entity and return its id"""
        entity = self.next_entity_id
        self.next_entity_id += 1
        self.entities.add(entity)
        self.entity_components[entity] = set()
        return entity

    def destroy_entity(self, entity: int) -> None:
        """Remove an entity and all its components; unknown ids are ignored"""
        if entity not in self.entities:
            return
        for name in self.entity_components.pop(entity):
            self.components[name].pop(entity, None)
        self.entities.discard(entity)

    def add_component(self, entity: int, name: str, data: Any) -> None:
        """
        Attach a data record to an entity

        Args:
            entity: Entity id returned by create_entity
            name: Component name
            data: Opaque component record

        Raises:
            KeyError: If the entity does not exist
        """
        if entity not in self.entities:
            raise KeyError(f"Entity {entity} does not exist")
        self.components.setdefault(name, {})[entity] = data
        self.entity_components[entity].add(name)

    def remove_component(self, entity: int, name: str) -> None:
        self.components.get(name, {}).pop(entity, None)
        if entity in self.entity_components:
            self.entity_components[entity].discard(name)

    def get_component(self, entity: int, name: str) -> Any:
        return self.components.get(name, {}).get(entity)

    def has_component(self, entity: int, name: str) -> bool:
        return entity in self.components.get(name, {})

    def get_all_components(self, name: str) -> Dict[int, Any]:
        return self.components.get(name, {})

    def get_entities_with(self, *names: str) -> List[int]:
        """Get the ids of every entity carrying all of the named components"""
        return [entity for entity in sorted(self.entities)
                if all(self.has_component(entity, name) for name in names)]

    def query(self, *names: str) -> List[Dict[str, Any]]:
        """
        Get component records of every entity carrying all of the named components

        Returns:
            One dictionary per entity with an "id" key plus one key per component
        """
        results = []
        for entity in self.get_entities_with(*names):
            record = {"id": entity}
            for name in names:
                record[name] = self.get_component(entity, name)
            results.append(record)
        return results

    @property
    def entity_count(self) -> int:
        return len(self.entities)


class Scene:
    """Set of drawable meshes, in insertion order"""

    def __init__(self):
        self._meshes: List[Any] = []

    def add(self, mesh: Any) -> None:
        if not any(existing is mesh for existing in self._meshes):
            self._meshes.append(mesh)

    def remove(self, mesh: Any) -> None:
        """Detach a mesh; meshes not in the scene are ignored"""
        self._meshes = [existing for existing in self._meshes if existing is not mesh]

    @property
    def meshes(self) -> List[Any]:
        return list(self._meshes)

    def __contains__(self, mesh: Any) -> bool:
        return any(existing is mesh for existing in self._meshes)

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._meshes))

    def __len__(self) -> int:
        return len(self._meshes)
